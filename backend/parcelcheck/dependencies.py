from parcelcheck.config import settings
from parcelcheck.database import get_db
from parcelcheck.services.claude_service import StickerVisionService
from parcelcheck.session_store.service import SessionService

# Re-export get_db for use in Depends()
get_db = get_db


def get_session_service() -> SessionService:
    return SessionService(settings)


def get_vision_service() -> StickerVisionService:
    return StickerVisionService(settings)
