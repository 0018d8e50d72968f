"""ORM model for persisted session snapshots (one row per version)."""

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from parcelcheck.models.base import Base, TimestampMixin


class SessionSnapshot(TimestampMixin, Base):
    __tablename__ = "session_snapshots"

    # The version is the primary key: two writers saving the same version collide
    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    state: Mapped[dict] = mapped_column(JSON, nullable=False)
