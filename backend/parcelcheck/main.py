import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parcelcheck import __version__
from parcelcheck.api.router import api_router
from parcelcheck.config import settings
from parcelcheck.database import engine
from parcelcheck.middleware.logging import RequestLoggingMiddleware
from parcelcheck.models import Base
from parcelcheck.session_store.repository import StaleSessionError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Sentry if DSN is configured
    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            environment=settings.environment,
        )
        logger.info("Sentry initialized (env=%s)", settings.environment)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Starting parcelcheck backend (env=%s)", settings.environment)
    yield
    logger.info("Shutting down parcelcheck backend")
    await engine.dispose()


app = FastAPI(
    title="parcelcheck - Package Room Check-in",
    description="Manifest import and photo-based sticker reconciliation for package rooms",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(StaleSessionError)
async def stale_session_handler(request: Request, exc: StaleSessionError) -> JSONResponse:
    logger.warning("Rejected concurrent session write: %s", exc)
    return JSONResponse(status_code=409, content={"detail": f"{exc}. Reload the session and retry."})


app.include_router(api_router, prefix="/api")
