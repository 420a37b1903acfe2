"""
Pydantic models for citizen reports as seen by the admin/supervisor console.
Reports are created by the citizen app; the console only reads them and moves
them through the status lifecycle.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Union
from enum import Enum
import re


class ReportStatus(str, Enum):
    """
    Report lifecycle states (wire values match the stored documents).

    Pending → In Progress → Resolved, with Rejected reserved.
    """
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


def _status_key(value) -> str:
    return re.sub(r"[\s_-]", "", str(value or "")).lower()


_STATUS_LOOKUP = {_status_key(s.value): s for s in ReportStatus}


def parse_status(value) -> Optional[ReportStatus]:
    """
    'In Progress', 'IN_PROGRESS', 'in-progress' and 'InProgress' are all one
    state. Returns None for anything that names no status.
    """
    if isinstance(value, ReportStatus):
        return value
    return _STATUS_LOOKUP.get(_status_key(value))


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Report(BaseModel):
    """
    Normalized report record.

    Stored documents mix camelCase and snake_case field names; the report
    store folds both into this one shape.
    """
    id: str = Field(..., description="Firestore document ID")
    user_id: Optional[str] = Field(None, description="Submitting citizen")
    supervisor_id: Optional[str] = Field(None, description="Supervisor the report is routed to")
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[Union[Coordinates, str]] = Field(
        None, description="Parsed coordinates, or the free-text location when coordinates are unavailable"
    )
    status: ReportStatus = ReportStatus.PENDING
    photo_url: Optional[str] = Field(None, description="Photo attached by the citizen")
    worker_name: Optional[str] = Field(None, description="Worker assigned by a supervisor")
    estimated_time: Optional[str] = Field(None, description="Estimate given by the admin who started work")
    resolved_photo_url: Optional[str] = None
    resolved_image_url: Optional[str] = None
    resolved_class: Optional[str] = Field(None, description="Classifier label that confirmed the resolution")
    resolved_at: Optional[datetime] = None
    requires_manual_review: bool = Field(default=False, description="Automated resolution could not be confirmed")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "abc123",
                "user_id": "citizen-42",
                "title": "Pothole near bus stop",
                "description": "Deep pothole on the left lane",
                "location": {"lat": 12.9716, "lng": 77.5946},
                "status": "In Progress",
                "worker_name": "Worker A",
                "estimated_time": "2 days",
                "requires_manual_review": False,
                "created_at": "2024-01-15T10:30:00Z",
            }
        }

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.location if isinstance(self.location, Coordinates) else None


class Evidence(BaseModel):
    """Evidence backing a resolution claim."""
    photo_url: Optional[str] = None
    resolved_class: Optional[str] = None
    confidence: Optional[float] = None


# Request / response models

class StartWorkRequest(BaseModel):
    estimated_time: str = Field(..., max_length=100, description="Free-text estimate, e.g. '2 days'")


class AssignWorkerRequest(BaseModel):
    worker_name: str = Field(..., max_length=100)


class CompleteReportRequest(BaseModel):
    image_url: str = Field(..., description="Public URL of the uploaded evidence photo")


class ResolveReportRequest(BaseModel):
    image_url: str = Field(..., description="Public URL of the uploaded evidence photo")
    resolved_class: Optional[str] = Field(None, description="Classifier label, required when resolution is ML-gated")


class CompleteReportResponse(BaseModel):
    status: ReportStatus
    requires_manual_review: bool = False
    report: Report


class EvidenceUploadResponse(BaseModel):
    image_url: str


class HotspotCell(BaseModel):
    lat: float
    lng: float
    count: int
    weight: float = Field(..., description="Heat intensity, 0.2-1.0")
    radius: float = Field(..., description="Marker radius in pixels")
