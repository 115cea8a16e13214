"""
Capability interfaces consumed by the report orchestrator.

Production code composes the concrete adapters; tests inject small fakes
that satisfy the same protocols.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .models import Entity, EntitySummary, ReportMetadata


class UpstreamGateway(Protocol):
    """Authenticated access to the upstream student API."""

    async def fetch_entity(self, entity_id: int) -> Entity:
        ...

    async def list_entities(self, filters: Optional[Dict[str, str]] = None) -> List[EntitySummary]:
        ...

    async def health_probe(self) -> None:
        """Raise when the upstream is unreachable or failing with a server error."""
        ...

    async def close(self) -> None:
        ...


class DocumentSynthesizer(Protocol):
    """Turns an entity into a persisted artifact and sweeps old artifacts."""

    async def synthesize(self, entity: Entity, metadata: ReportMetadata) -> str:
        """Return the path of the written artifact."""
        ...

    async def cleanup(self) -> int:
        """Remove artifacts past retention, returning how many were removed."""
        ...
