"""Photo endpoints: upload shelf photos and record their sticker readings."""

import logging

import anthropic
from fastapi import APIRouter, Depends, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.config import settings
from parcelcheck.dependencies import get_db, get_session_service, get_vision_service
from parcelcheck.schemas.detection import OracleSubmission
from parcelcheck.schemas.session import PhotoListResponse, PhotoProcessResponse, SessionSummary
from parcelcheck.services.claude_service import StickerVisionService
from parcelcheck.services.photo_service import encode_photo, get_file_extension, remove_upload, save_upload
from parcelcheck.session_store.service import NotFoundError, SessionService

logger = logging.getLogger("parcelcheck.photos")

router = APIRouter()


@router.get("", response_model=PhotoListResponse)
async def list_photos(
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PhotoListResponse:
    state = await service.get_state(db)
    return PhotoListResponse(photos=state.photos, total=len(state.photos))


@router.post("", response_model=PhotoProcessResponse, status_code=201)
async def upload_photo(
    file: UploadFile,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
    vision: StickerVisionService = Depends(get_vision_service),
) -> PhotoProcessResponse:
    """Store a shelf photo, have the vision oracle read its stickers, and match them."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    file_ext = get_file_extension(file.filename)
    if file_ext not in settings.allowed_image_types:
        raise HTTPException(
            status_code=400,
            detail=f"File type '{file_ext}' not allowed. Allowed: {', '.join(sorted(settings.allowed_image_types))}",
        )

    content = await file.read()
    if len(content) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB",
        )
    await file.seek(0)

    _, file_path = await save_upload(file, settings)
    _, photo = await service.add_photo(db, filename=file.filename, file_path=file_path)
    # Keep the photo even if the oracle call below fails
    await db.commit()

    try:
        image_b64, media_type = encode_photo(content, settings.max_image_dimension)
        state, detections, rejected = await service.process_photo(
            db, vision, photo.id, image_b64, media_type
        )
    except (ValueError, OSError, anthropic.APIError) as e:
        logger.error("Sticker detection failed for photo %s: %s", photo.id, e)
        raise HTTPException(status_code=502, detail=f"Sticker detection failed: {e}")

    processed = next(p for p in state.photos if p.id == photo.id)
    return PhotoProcessResponse(
        photo=processed,
        detections=detections,
        rejected=rejected,
        summary=service.summarize(state),
    )


@router.post("/{photo_id}/detections", response_model=PhotoProcessResponse)
async def submit_detections(
    photo_id: str,
    request: OracleSubmission,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PhotoProcessResponse:
    """Record sticker readings produced by an external vision oracle."""
    try:
        state, detections, rejected = await service.submit_oracle_output(db, photo_id, request.detections)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    processed = next(p for p in state.photos if p.id == photo_id)
    return PhotoProcessResponse(
        photo=processed,
        detections=detections,
        rejected=rejected,
        summary=service.summarize(state),
    )


@router.post("/register", response_model=PhotoProcessResponse, status_code=201)
async def register_photo(
    filename: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PhotoProcessResponse:
    """Add a photo record without uploading an image, for externally processed photos."""
    state, photo = await service.add_photo(db, filename=filename)
    return PhotoProcessResponse(photo=photo, summary=service.summarize(state))


@router.delete("/{photo_id}", response_model=SessionSummary)
async def delete_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> SessionSummary:
    """Remove a photo and its detections; packages only it had found go back to pending."""
    try:
        state, photo = await service.delete_photo(db, photo_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    await remove_upload(photo.file_path)
    return service.summarize(state)
