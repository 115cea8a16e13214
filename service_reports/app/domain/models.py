"""
Data models for the Report Service.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


NOT_AVAILABLE = "N/A"


class Entity(BaseModel):
    """Student record as returned by the upstream API. Read-only here."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: int
    name: str
    email: str
    system_access: bool = Field(default=False, alias="systemAccess")
    phone: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="class")
    section: Optional[str] = None
    roll: Optional[int] = None
    father_name: Optional[str] = Field(default=None, alias="fatherName")
    father_phone: Optional[str] = Field(default=None, alias="fatherPhone")
    mother_name: Optional[str] = Field(default=None, alias="motherName")
    mother_phone: Optional[str] = Field(default=None, alias="motherPhone")
    guardian_name: Optional[str] = Field(default=None, alias="guardianName")
    guardian_phone: Optional[str] = Field(default=None, alias="guardianPhone")
    relation_of_guardian: Optional[str] = Field(default=None, alias="relationOfGuardian")
    current_address: Optional[str] = Field(default=None, alias="currentAddress")
    permanent_address: Optional[str] = Field(default=None, alias="permanentAddress")
    admission_date: Optional[str] = Field(default=None, alias="admissionDate")
    reporter_name: Optional[str] = Field(default=None, alias="reporterName")

    @property
    def display_name(self) -> str:
        return self.name.strip() or NOT_AVAILABLE

    @property
    def display_email(self) -> str:
        return self.email.strip() or NOT_AVAILABLE


class EntitySummary(BaseModel):
    """List-view projection of a student."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str
    email: str
    system_access: bool = Field(default=False, alias="systemAccess")
    class_name: Optional[str] = Field(default=None, alias="class")
    section: Optional[str] = None
    roll: Optional[int] = None


class ReportMetadata(BaseModel):
    """Metadata handed to the synthesizer alongside the entity."""

    generated_at: datetime
    generated_by: str
    report_id: str

    @classmethod
    def for_entity(cls, entity_id: int, generated_by: str, generated_at: datetime) -> "ReportMetadata":
        # One-second resolution; two reports for one entity in the same second share an id.
        return cls(
            generated_at=generated_at,
            generated_by=generated_by,
            report_id=f"RPT-{entity_id}-{int(generated_at.timestamp())}",
        )


class ReportResult(BaseModel):
    """Descriptor returned to the caller after a report is produced."""

    report_id: str
    entity_id: int
    entity_name: str
    artifact_path: str
    generated_at: datetime
    generated_by: str
    file_size_bytes: int


class ComponentStatus(BaseModel):
    status: str
    message: str


class HealthStatus(BaseModel):
    """Aggregated service health."""

    service: str
    healthy: bool
    message: str
    timestamp: datetime
    components: Dict[str, ComponentStatus] = Field(default_factory=dict)
