import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from core.config import settings

# log for debugging purposes
logger = logging.getLogger("database_engine")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; in-memory SQLite shares one connection."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=echo)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


db_engine = build_engine(settings.database_url, echo=settings.database_echo)
logger.info("Document store engine configured for %s", db_engine.url.render_as_string(hide_password=True))

# Create async session maker to be used throughout the application
AsyncSessionLocal = build_sessionmaker(db_engine)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Function to initialize the database (create tables)
async def init_db(engine: AsyncEngine = db_engine):
    # Import models so they register on Base.metadata
    from database.models import documents  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to close database connections
async def close_db(engine: AsyncEngine = db_engine):
    """Close database engine and connections."""
    await engine.dispose()
