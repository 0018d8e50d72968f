from fastapi import APIRouter

from parcelcheck.api.v1 import detections, health, manifest, packages, photos, session

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(manifest.router, prefix="/v1/manifest", tags=["manifest"])
api_router.include_router(packages.router, prefix="/v1/packages", tags=["packages"])
api_router.include_router(photos.router, prefix="/v1/photos", tags=["photos"])
api_router.include_router(detections.router, prefix="/v1/detections", tags=["detections"])
api_router.include_router(session.router, prefix="/v1/session", tags=["session"])
