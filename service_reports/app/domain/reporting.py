from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from shared.errors import AccessLayerException, ArtifactError, InvalidArgument, OperationCancelled
from shared.logging import get_logger, set_actor
from shared.metrics import MetricsCollector

from .interfaces import DocumentSynthesizer, UpstreamGateway
from .models import (
    ComponentStatus,
    Entity,
    EntitySummary,
    HealthStatus,
    ReportMetadata,
    ReportResult,
)

T = TypeVar("T")

UPSTREAM_COMPONENT = "upstream_api"
SYNTHESIZER_COMPONENT = "document_synthesizer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportState(str, Enum):
    """Lifecycle of a single report request. DONE and FAILED are terminal."""
    IDLE = "idle"
    FETCHING_ENTITY = "fetching_entity"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class ReportOrchestrator:
    """Coordinates entity retrieval, artifact synthesis and result assembly."""

    def __init__(
        self,
        *,
        upstream: UpstreamGateway,
        synthesizer: Optional[DocumentSynthesizer],
        metrics: Optional[MetricsCollector] = None,
        service_name: str = "Report Service",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.upstream = upstream
        self.synthesizer = synthesizer
        self.metrics = metrics
        self.service_name = service_name
        self._clock = clock
        self.logger = get_logger("reports.orchestrator")
        self._cleanup_task: Optional[asyncio.Task] = None

    async def fetch_entity(self, entity_id: int, *, deadline: Optional[float] = None) -> Entity:
        """Fetch one entity; ids must be positive and are checked before any network call."""
        if entity_id <= 0:
            raise InvalidArgument(f"invalid entity ID: {entity_id}", details={"entity_id": entity_id})
        return await self._with_deadline("fetch_entity", self.upstream.fetch_entity(entity_id), deadline)

    async def list_entities(
        self,
        filters: Optional[Dict[str, str]] = None,
        *,
        deadline: Optional[float] = None,
    ) -> List[EntitySummary]:
        cleaned = {key: value for key, value in (filters or {}).items() if value and value.strip()}
        return await self._with_deadline("list_entities", self.upstream.list_entities(cleaned), deadline)

    async def create_report(
        self,
        entity_id: int,
        generated_by: str,
        *,
        deadline: Optional[float] = None,
    ) -> ReportResult:
        """Fetch the entity, synthesize its artifact and describe the result."""
        set_actor(generated_by)
        return await self._with_deadline("create_report", self._create_report(entity_id, generated_by), deadline)

    async def _create_report(self, entity_id: int, generated_by: str) -> ReportResult:
        state = self._transition(entity_id, ReportState.IDLE, ReportState.FETCHING_ENTITY)
        try:
            entity = await self.fetch_entity(entity_id)
        except AccessLayerException as exc:
            self._fail(entity_id, state, exc)
            raise

        state = self._transition(entity_id, state, ReportState.SYNTHESIZING)
        generated_at = self._clock()
        metadata = ReportMetadata.for_entity(entity_id, generated_by, generated_at)

        try:
            if self.synthesizer is None:
                raise ArtifactError("Document synthesizer not initialized")
            artifact_path = await self.synthesizer.synthesize(entity, metadata)
        except ArtifactError as exc:
            self._fail(entity_id, state, exc)
            raise
        except Exception as exc:
            error = ArtifactError(f"failed to generate report: {exc}", details={"entity_id": entity_id})
            self._fail(entity_id, state, error)
            raise error from exc

        result = ReportResult(
            report_id=metadata.report_id,
            entity_id=entity_id,
            entity_name=entity.display_name,
            artifact_path=artifact_path,
            generated_at=metadata.generated_at,
            generated_by=generated_by,
            file_size_bytes=self._artifact_size(artifact_path),
        )
        self._transition(entity_id, state, ReportState.DONE)
        self._record("report_generated")
        self.logger.info(
            "Report generated",
            report_id=result.report_id,
            entity_id=entity_id,
            file_size_bytes=result.file_size_bytes
        )
        return result

    async def health_check(self) -> HealthStatus:
        """Aggregate component health; the component map is always complete."""
        components: Dict[str, ComponentStatus] = {}

        try:
            await self.upstream.health_probe()
            components[UPSTREAM_COMPONENT] = ComponentStatus(status="healthy", message="API is responsive")
        except Exception as exc:
            self.logger.warning("Upstream health probe failed", error=str(exc))
            components[UPSTREAM_COMPONENT] = ComponentStatus(status="unhealthy", message=str(exc))

        if self.synthesizer is not None:
            components[SYNTHESIZER_COMPONENT] = ComponentStatus(status="healthy", message="Generator is ready")
        else:
            components[SYNTHESIZER_COMPONENT] = ComponentStatus(status="unhealthy", message="Generator not initialized")

        healthy = all(component.status == "healthy" for component in components.values())
        return HealthStatus(
            service=self.service_name,
            healthy=healthy,
            message="All systems operational" if healthy else "Some components are unhealthy",
            timestamp=self._clock(),
            components=components,
        )

    async def cleanup_artifacts(self) -> int:
        """Run the synthesizer's retention sweep; its errors propagate unchanged."""
        if self.synthesizer is None:
            raise ArtifactError("Document synthesizer not initialized")
        removed = await self.synthesizer.cleanup()
        self._record("artifacts_removed", removed)
        return removed

    async def start_cleanup_worker(self, interval: float) -> None:
        """Start the periodic retention sweep."""
        if self._cleanup_task is not None:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval))

    async def stop_cleanup_worker(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.cleanup_artifacts()
            except ArtifactError as exc:
                self.logger.error("Scheduled artifact cleanup failed", error=exc.message)
            except Exception:
                self.logger.exception("Unexpected error in scheduled artifact cleanup")

    async def _with_deadline(self, operation: str, awaitable: Awaitable[T], deadline: Optional[float]) -> T:
        if deadline is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=deadline)
        except asyncio.TimeoutError as exc:
            self._record("deadline_exceeded")
            raise OperationCancelled(
                f"{operation} cancelled after exceeding its {deadline}s deadline",
                details={"operation": operation, "deadline_seconds": deadline}
            ) from exc

    def _transition(self, entity_id: int, current: ReportState, target: ReportState) -> ReportState:
        self.logger.debug("Report state transition", entity_id=entity_id, from_state=current.value, to_state=target.value)
        return target

    def _fail(self, entity_id: int, current: ReportState, exc: AccessLayerException) -> None:
        self._transition(entity_id, current, ReportState.FAILED)
        self._record("report_failed")
        self.logger.warning("Report generation failed", entity_id=entity_id, stage=current.value, code=exc.code, error=exc.message)

    def _artifact_size(self, artifact_path: str) -> int:
        try:
            return os.stat(artifact_path).st_size
        except OSError as exc:
            self.logger.warning("Could not stat report artifact", path=artifact_path, error=str(exc))
            return 0

    def _record(self, event: str, amount: float = 1) -> None:
        if self.metrics is not None:
            self.metrics.record_business_event(event, amount=amount)
