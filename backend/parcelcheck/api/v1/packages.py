from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.dependencies import get_db, get_session_service
from parcelcheck.hitl_workflow.corrections import InvalidTransitionError
from parcelcheck.schemas.package import PackageListResponse, PackageStatus
from parcelcheck.schemas.session import PackageActionResponse, SessionSummary
from parcelcheck.session_store.service import NotFoundError, SessionService

router = APIRouter()


@router.get("", response_model=PackageListResponse)
async def list_packages(
    status: PackageStatus | None = None,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PackageListResponse:
    state = await service.get_state(db)
    packages = [pkg for pkg in state.packages if status is None or pkg.status == status]
    return PackageListResponse(packages=packages, total=len(packages))


@router.post("/sweep", response_model=SessionSummary)
async def sweep_packages(
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> SessionSummary:
    """End the session: every package still pending is marked not_found."""
    state = await service.sweep_not_found(db)
    return service.summarize(state)


@router.post("/{package_id}/verify", response_model=PackageActionResponse)
async def verify_package(
    package_id: str,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_session_service),
) -> PackageActionResponse:
    """Confirm a found package is physically on the shelf."""
    try:
        state, package = await service.verify_package(db, package_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return PackageActionResponse(package=package, summary=service.summarize(state))
