"""Test fixtures and configuration."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ledger_recon.database import Base
from ledger_recon.services import policy
from ledger_recon.services.store import SqlAlchemyStore
from tests.fakes import InMemoryStore


@pytest.fixture(autouse=True)
def reset_reconciliation_config(monkeypatch):
    """Every test starts from the shipped policy file with no env overrides."""
    monkeypatch.delenv("RECONCILIATION_ACCEPTANCE_THRESHOLD", raising=False)
    monkeypatch.delenv("RECONCILIATION_AUTO_ACCEPT_THRESHOLD", raising=False)
    policy._config_cache = None
    yield
    policy._config_cache = None


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest_asyncio.fixture
async def client(store: InMemoryStore) -> AsyncIterator[AsyncClient]:
    """HTTP client against the app with the store dependency swapped for ``store``."""
    from ledger_recon.main import app
    from ledger_recon.routers.reconciliation import get_store

    async def override_get_store() -> InMemoryStore:
        return store

    app.dependency_overrides[get_store] = override_get_store
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_store, None)


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite engine with every table created."""
    import ledger_recon.models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'recon.db'}", poolclass=NullPool)

    # pysqlite opens transactions lazily, which breaks SAVEPOINT; issue BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


@pytest.fixture
def db_store(db: AsyncSession) -> SqlAlchemyStore:
    return SqlAlchemyStore(db)
