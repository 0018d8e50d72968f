from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.dependencies import get_db, get_session_service
from parcelcheck.exports.formatters import (
    EXPORT_FORMATS,
    export_packages_csv,
    export_remaining_text,
    export_session_json,
    remaining_packages,
)
from parcelcheck.schemas.session import SessionState, SessionSummary
from parcelcheck.session_store.service import SessionService

router = APIRouter()

MEDIA_TYPES = {"text": "text/plain", "csv": "text/csv", "json": "application/json"}


@router.get("", response_model=SessionState)
async def get_session(
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> SessionState:
    return await service.get_state(db)


@router.get("/summary", response_model=SessionSummary)
async def get_summary(
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> SessionSummary:
    state = await service.get_state(db)
    return service.summarize(state)


@router.get("/export", response_class=PlainTextResponse)
async def export_session(
    format: str = "text",
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PlainTextResponse:
    """Remaining packages as text or CSV, or the whole session as JSON."""
    if format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown export format '{format}'. Allowed: {', '.join(EXPORT_FORMATS)}",
        )

    state = await service.get_state(db)
    if format == "json":
        body = export_session_json(state)
    elif format == "csv":
        body = export_packages_csv(remaining_packages(state.packages))
    else:
        body = export_remaining_text(remaining_packages(state.packages))
    return PlainTextResponse(body, media_type=MEDIA_TYPES[format])


@router.delete("", response_model=SessionSummary)
async def clear_session(
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> SessionSummary:
    """Start a fresh, empty session."""
    state = await service.clear(db)
    return service.summarize(state)
