"""Detection endpoints: browse sticker readings and apply human review actions."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.dependencies import get_db, get_session_service
from parcelcheck.schemas.detection import (
    DetectionCorrectionRequest,
    DetectionListResponse,
    DetectionStatus,
    ReviewQueueItem,
    ReviewQueueResponse,
)
from parcelcheck.schemas.session import DetectionActionResponse
from parcelcheck.session_store.service import NotFoundError, SessionService

router = APIRouter()


@router.get("", response_model=DetectionListResponse)
async def list_detections(
    status: DetectionStatus | None = None,
    photo_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> DetectionListResponse:
    state = await service.get_state(db)
    detections = [
        det
        for det in state.detections
        if (status is None or det.status == status) and (photo_id is None or det.photo_id == photo_id)
    ]
    return DetectionListResponse(detections=detections, total=len(detections))


@router.get("/review", response_model=ReviewQueueResponse)
async def review_queue(
    filter: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> ReviewQueueResponse:
    """Detections that need a human look, lowest confidence first."""
    state = await service.get_state(db)
    try:
        queue = service.review_queue(state, filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ReviewQueueResponse(
        items=[ReviewQueueItem(detection=det, reason=reason) for det, reason in queue],
        total=len(queue),
    )


@router.post("/{detection_id}/correct", response_model=DetectionActionResponse)
async def correct_detection(
    detection_id: str,
    request: DetectionCorrectionRequest,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> DetectionActionResponse:
    """Replace the oracle's reading with a human one and re-match the detection."""
    try:
        state, detection = await service.correct_detection(
            db,
            detection_id,
            apartment=request.apartment,
            last4=request.last4,
            notes=request.notes,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return DetectionActionResponse(detection=detection, summary=service.summarize(state))


@router.post("/{detection_id}/confirm", response_model=DetectionActionResponse)
async def confirm_detection(
    detection_id: str,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> DetectionActionResponse:
    try:
        state, detection = await service.confirm_detection(db, detection_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DetectionActionResponse(detection=detection, summary=service.summarize(state))


@router.post("/{detection_id}/reject", response_model=DetectionActionResponse)
async def reject_detection(
    detection_id: str,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> DetectionActionResponse:
    """Mark a reading as wrong; any package it had found goes back to pending."""
    try:
        state, detection = await service.reject_detection(db, detection_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DetectionActionResponse(detection=detection, summary=service.summarize(state))
