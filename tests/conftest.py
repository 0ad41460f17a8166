"""
Shared fixtures: a throwaway SQLite database per test, data builders, and an in-memory
notifier that records (or fails) deliveries.
"""
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tutorly.database import Base
from tests.helpers import FakeRefresher, RecordingNotifier, Seeder


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite database, created fresh for each test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tutorly_test.db'}",
        poolclass=NullPool,
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def refresher():
    return FakeRefresher()
