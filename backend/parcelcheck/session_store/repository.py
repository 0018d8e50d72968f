"""Persistence for session snapshots.

The session is a single versioned document. Saving version N+1 inserts a new
row; a concurrent writer that loaded the same version N fails on the primary
key instead of silently overwriting the other write.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.models.session_snapshot import SessionSnapshot
from parcelcheck.schemas.session import SessionState

logger = logging.getLogger("parcelcheck.session")


class StaleSessionError(RuntimeError):
    """The session changed after it was loaded; reload and retry."""


class SessionRepository:
    """Loads and saves SessionState snapshots."""

    def __init__(self, history_limit: int = 50):
        self.history_limit = history_limit

    async def load_latest(self, db: AsyncSession) -> SessionState | None:
        result = await db.execute(
            select(SessionSnapshot).order_by(SessionSnapshot.version.desc()).limit(1)
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            return None
        return SessionState.model_validate(snapshot.state)

    async def save(self, db: AsyncSession, state: SessionState) -> SessionState:
        """Insert the state as a new snapshot row."""
        db.add(
            SessionSnapshot(
                version=state.version,
                session_id=state.session_id,
                state=state.model_dump(mode="json"),
            )
        )
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            raise StaleSessionError(
                f"Session version {state.version} was already written by another request"
            ) from e

        if self.history_limit > 0:
            await db.execute(
                delete(SessionSnapshot).where(
                    SessionSnapshot.version <= state.version - self.history_limit
                )
            )

        logger.debug("Saved session %s version %d", state.session_id, state.version)
        return state
