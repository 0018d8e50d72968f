"""Manifest import endpoints: preview a pasted package list, or import it into the session."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.dependencies import get_db, get_session_service
from parcelcheck.schemas.package import ManifestImportRequest, ManifestImportResponse
from parcelcheck.session_store.service import SessionService

router = APIRouter()


@router.post("/preview", response_model=ManifestImportResponse)
async def preview_manifest(
    request: ManifestImportRequest,
    service: SessionService = Depends(get_session_service),
) -> ManifestImportResponse:
    """Parse the manifest without touching the session."""
    result = service.preview_manifest(request.raw_text)
    return ManifestImportResponse(packages=result.packages, errors=result.errors)


@router.post("/import", response_model=ManifestImportResponse, status_code=201)
async def import_manifest(
    request: ManifestImportRequest,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> ManifestImportResponse:
    """Replace the session's package list; existing detections are re-matched."""
    _, result = await service.import_manifest(db, request.raw_text)
    return ManifestImportResponse(packages=result.packages, errors=result.errors)
