from parcelcheck.models.base import Base, TimestampMixin
from parcelcheck.models.session_snapshot import SessionSnapshot

__all__ = [
    "Base",
    "TimestampMixin",
    "SessionSnapshot",
]
