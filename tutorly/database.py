"""Database connection and session management using SQLAlchemy async ORM"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from tutorly import config

DATABASE_URL = config.DATABASE_URL

# pool_size=20: Keep 20 connections alive in the pool
# max_overflow=30: Allow 30 additional connections under load (total 50 max)
# pool_recycle=3600: Recycle connections every hour to prevent stale connections
engine_kwargs = {"echo": False}
if not DATABASE_URL.startswith("sqlite"):
    engine_kwargs.update(
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
        pool_pre_ping=True,  # Verify connection health before using
    )

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for declarative models
Base = declarative_base()


async def init_models() -> None:
    """Create any missing tables. Called once from the application lifespan."""
    # Import models so they register on Base.metadata
    import tutorly.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

