"""
Domain layer for the Report Service.

Holds the report data models, the capability interfaces the orchestrator
depends on, and the orchestrator itself.
"""

from .interfaces import DocumentSynthesizer, UpstreamGateway
from .models import (
    ComponentStatus,
    Entity,
    EntitySummary,
    HealthStatus,
    ReportMetadata,
    ReportResult,
)
from .reporting import ReportOrchestrator, ReportState

__all__ = [
    "DocumentSynthesizer",
    "UpstreamGateway",
    "ComponentStatus",
    "Entity",
    "EntitySummary",
    "HealthStatus",
    "ReportMetadata",
    "ReportResult",
    "ReportOrchestrator",
    "ReportState",
]
