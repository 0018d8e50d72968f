from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from parcelcheck.models.base import Base
# Import all models so they register with Base.metadata for create_all
import parcelcheck.models  # noqa: F401
from parcelcheck.services.claude_service import OracleResult, StickerVisionService


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def test_engine(tmp_path):
    # A fresh database per test: routes commit, so rollback alone would leak snapshots
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def vision():
    """Stand-in vision oracle; tests set detect_stickers.return_value."""
    service = MagicMock(spec=StickerVisionService)
    service.detect_stickers = AsyncMock(return_value=OracleResult())
    return service


@pytest.fixture
async def client(db_session, vision, tmp_path):
    from parcelcheck.config import settings
    from parcelcheck.database import get_db
    from parcelcheck.dependencies import get_vision_service
    from parcelcheck.main import app

    # Override upload dir to temp
    original_upload_dir = settings.upload_dir
    settings.upload_dir = str(tmp_path / "uploads")

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_vision_service] = lambda: vision

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    settings.upload_dir = original_upload_dir
