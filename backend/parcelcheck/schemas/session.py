"""Pydantic schemas for the session document and its summaries."""

import uuid
from datetime import datetime, timezone

from pydantic import Field

from parcelcheck.schemas.detection import Detection
from parcelcheck.schemas.package import CamelModel, Package


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Photo(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    filename: str | None = None
    file_path: str | None = None
    captured_at: datetime = Field(default_factory=utcnow)
    processed: bool = False
    detection_ids: list[str] = Field(default_factory=list)


class SessionState(CamelModel):
    """The whole check-in session as one immutable document.

    Every change produces a new SessionState with version + 1; nothing
    mutates a state in place.
    """

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)
    packages: list[Package] = Field(default_factory=list)
    photos: list[Photo] = Field(default_factory=list)
    detections: list[Detection] = Field(default_factory=list)


class PackageCounts(CamelModel):
    total: int = 0
    pending: int = 0
    found: int = 0
    verified: int = 0
    not_found: int = 0


class DetectionCounts(CamelModel):
    total: int = 0
    matched: int = 0
    duplicate: int = 0
    orphan: int = 0
    unreadable: int = 0
    ambiguous: int = 0


class SessionSummary(CamelModel):
    session_id: str
    version: int
    packages: PackageCounts
    detections: DetectionCounts
    photos: int = 0
    needs_review: int = 0
    last_modified: datetime | None = None


class PhotoProcessResponse(CamelModel):
    photo: Photo
    detections: list[Detection] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
    summary: SessionSummary


class PhotoListResponse(CamelModel):
    photos: list[Photo]
    total: int


class DetectionActionResponse(CamelModel):
    detection: Detection
    summary: SessionSummary


class PackageActionResponse(CamelModel):
    package: Package
    summary: SessionSummary
