from parcelcheck.schemas.detection import (
    BoundingBox,
    Detection,
    DetectionStatus,
    OracleDetection,
)
from parcelcheck.schemas.health import HealthResponse
from parcelcheck.schemas.package import (
    NO_TRACKING_SENTINEL,
    Package,
    PackageStatus,
    ParsingError,
)
from parcelcheck.schemas.session import Photo, SessionState, SessionSummary

__all__ = [
    "BoundingBox",
    "Detection",
    "DetectionStatus",
    "HealthResponse",
    "NO_TRACKING_SENTINEL",
    "OracleDetection",
    "Package",
    "PackageStatus",
    "ParsingError",
    "Photo",
    "SessionState",
    "SessionSummary",
]
