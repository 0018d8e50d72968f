from parcelcheck.session_store.repository import SessionRepository, StaleSessionError
from parcelcheck.session_store.service import NotFoundError, SessionService

__all__ = ["NotFoundError", "SessionRepository", "SessionService", "StaleSessionError"]
