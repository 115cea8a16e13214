"""
File-backed document synthesizer for student reports.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

from shared.errors import ArtifactError
from shared.logging import get_logger

from ..domain.models import NOT_AVAILABLE, Entity, ReportMetadata

ARTIFACT_PREFIX = "entity_report_"
ARTIFACT_SUFFIX = ".json"
TEMP_PREFIX = ".report-"
TEMP_SUFFIX = ".tmp"

_SLUG_PATTERN = re.compile(r"[^A-Za-z0-9]+")

# (section title, [(label, entity attribute)])
REPORT_SECTIONS: List[Tuple[str, List[Tuple[str, str]]]] = [
    ("Personal Information", [
        ("Student ID", "id"),
        ("Name", "display_name"),
        ("Email", "display_email"),
        ("Phone", "phone"),
        ("Gender", "gender"),
        ("Date of Birth", "dob"),
        ("System Access", "system_access"),
    ]),
    ("Academic Information", [
        ("Class", "class_name"),
        ("Section", "section"),
        ("Roll Number", "roll"),
        ("Admission Date", "admission_date"),
        ("Reporter", "reporter_name"),
    ]),
    ("Family Information", [
        ("Father's Name", "father_name"),
        ("Father's Phone", "father_phone"),
        ("Mother's Name", "mother_name"),
        ("Mother's Phone", "mother_phone"),
        ("Guardian's Name", "guardian_name"),
        ("Guardian's Phone", "guardian_phone"),
        ("Relation of Guardian", "relation_of_guardian"),
    ]),
    ("Address Information", [
        ("Current Address", "current_address"),
        ("Permanent Address", "permanent_address"),
    ]),
]


def _display(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, bool):
        return "Yes" if value else "No"
    text = str(value).strip()
    return text or NOT_AVAILABLE


def _is_owned_artifact(name: str) -> bool:
    # Only files this synthesizer writes; the output directory may be shared.
    return (
        (name.startswith(ARTIFACT_PREFIX) and name.endswith(ARTIFACT_SUFFIX))
        or (name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX))
    )


class FileDocumentSynthesizer:
    """Writes report documents to ``output_dir`` and sweeps them by age."""

    def __init__(
        self,
        output_dir: str,
        *,
        max_file_size: int = 10 * 1024 * 1024,
        cleanup_enabled: bool = True,
        cleanup_after: float = 24 * 60 * 60,
        watermark_text: str = "",
        clock: Callable[[], float] = time.time,
    ):
        self.output_dir = Path(output_dir)
        self.max_file_size = max_file_size
        self.cleanup_enabled = cleanup_enabled
        self.cleanup_after = cleanup_after
        self.watermark_text = watermark_text
        self._clock = clock
        self.logger = get_logger("reports.synthesizer")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactError(
                f"failed to create output directory: {exc}",
                details={"output_dir": str(self.output_dir)}
            ) from exc

    async def synthesize(self, entity: Entity, metadata: ReportMetadata) -> str:
        document = self.build_document(entity, metadata)
        content = json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
        if len(content) > self.max_file_size:
            raise ArtifactError(
                "Generated report exceeds maximum file size",
                details={"size": len(content), "max_file_size": self.max_file_size}
            )

        path = self.output_dir / self.artifact_name(entity, metadata.generated_at)
        await asyncio.to_thread(self._write_atomic, path, content)

        self.logger.info(
            "Report artifact written",
            report_id=metadata.report_id,
            entity_id=entity.id,
            path=str(path),
            size=len(content)
        )
        return str(path)

    def build_document(self, entity: Entity, metadata: ReportMetadata) -> Dict[str, Any]:
        sections = [
            {
                "title": title,
                "fields": [
                    {"label": label, "value": _display(getattr(entity, attribute))}
                    for label, attribute in fields
                ],
            }
            for title, fields in REPORT_SECTIONS
        ]
        return {
            "title": "Student Report",
            "watermark": self.watermark_text,
            "report_id": metadata.report_id,
            "generated_at": metadata.generated_at.isoformat(),
            "generated_by": metadata.generated_by,
            "entity_id": entity.id,
            "sections": sections,
        }

    @staticmethod
    def artifact_name(entity: Entity, generated_at: datetime) -> str:
        slug = _SLUG_PATTERN.sub("_", entity.display_name).strip("_").lower() or "unnamed"
        stamp = generated_at.astimezone(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        return f"{ARTIFACT_PREFIX}{entity.id}_{slug}_{stamp}{ARTIFACT_SUFFIX}"

    def _write_atomic(self, path: Path, content: bytes) -> None:
        fd, temp_path = tempfile.mkstemp(dir=self.output_dir, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
        except OSError as exc:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise ArtifactError(f"failed to write report artifact: {exc}", details={"path": str(path)}) from exc

    async def cleanup(self) -> int:
        if not self.cleanup_enabled:
            self.logger.info("Artifact cleanup disabled, skipping sweep")
            return 0
        removed = await asyncio.to_thread(self._sweep)
        self.logger.info("Artifact cleanup finished", removed=removed, retention_seconds=self.cleanup_after)
        return removed

    def _sweep(self) -> int:
        cutoff = self._clock() - self.cleanup_after
        removed = 0
        try:
            candidates = [
                entry for entry in self.output_dir.iterdir()
                if entry.is_file() and _is_owned_artifact(entry.name)
            ]
        except OSError as exc:
            raise ArtifactError(f"failed to read output directory: {exc}") from exc

        for entry in candidates:
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
                entry.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise ArtifactError(f"failed to remove old report {entry.name}: {exc}") from exc
        return removed
