"""Shared test fixtures for the asset market test suite.

Uses an in-memory SQLite database with StaticPool so all sessions share the
same connection (committed data is visible across sessions).
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from assetmarket.database import Base, get_db
from assetmarket.main import app
from assetmarket.models import *  # noqa: ensure all models are loaded for create_all


# ---------------------------------------------------------------------------
# In-memory SQLite test engine (shared via StaticPool)
# ---------------------------------------------------------------------------

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


# ---------------------------------------------------------------------------
# Auto-use: create/drop tables for every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after. Also clear global state."""
    from assetmarket.services import event_service
    event_service.clear_subscribers()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    event_service.clear_subscribers()


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def db():
    """Yield a fresh AsyncSession for direct service-layer tests."""
    async with TestSession() as session:
        yield session


@pytest.fixture
async def client():
    """httpx AsyncClient wired to the FastAPI app with test DB override."""
    import httpx

    async def _override_get_db():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def engine(db: AsyncSession):
    """MarketEngine bound to the test session with the default SQL collaborators."""
    from assetmarket.services.market_service import MarketEngine
    return MarketEngine(db)


@pytest.fixture
def captured_events():
    """Subscribe a recorder to market notifications and return what it saw."""
    from assetmarket.services import event_service

    seen = []
    event_service.subscribe(seen.append)
    return seen


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_header():
    """Return a callable that builds an Authorization header from a JWT."""
    def _build(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _build


@pytest.fixture
def make_account():
    """Factory fixture: return (account_id, jwt_token) for a fresh identity."""
    from assetmarket.core.auth import create_access_token

    def _make(account_id: str = None):
        account_id = account_id or f"acct-{_new_id()[:8]}"
        return account_id, create_access_token(account_id)

    return _make


@pytest.fixture
def make_admin(make_account, monkeypatch):
    """Factory fixture: like make_account, but the identity is an administrator."""
    from assetmarket.config import settings

    def _make(account_id: str = "admin-1"):
        admin_id, token = make_account(account_id)
        current = settings.admin_ids | {admin_id}
        monkeypatch.setattr(settings, "admin_account_ids", ",".join(sorted(current)))
        return admin_id, token

    return _make


@pytest.fixture
def make_asset(db: AsyncSession):
    """Factory fixture: mint an asset owned by ``owner_id``."""
    from assetmarket.services.ownership_service import mint_asset

    async def _make(owner_id: str, uri: str = None):
        uri = uri or f"ipfs://asset-{_new_id()[:8]}"
        return await mint_asset(db, owner_id, uri)

    return _make


@pytest.fixture
def fund(db: AsyncSession):
    """Factory fixture: credit ``amount`` to ``account_id``."""
    from assetmarket.services import value_service

    async def _fund(account_id: str, amount=100):
        return await value_service.credit(db, account_id, Decimal(str(amount)), memo="test funding")

    return _fund
