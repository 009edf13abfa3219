from pathlib import Path
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for a SQLite (aiosqlite) or PostgreSQL (asyncpg) URL."""
    if database_url.startswith("sqlite"):
        # SQLite connections are cheap; pooling them across event loops is not
        return create_async_engine(database_url, echo=False, poolclass=NullPool)

    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


DATABASE_URL = get_settings().DATABASE_URL

engine = build_engine(DATABASE_URL)

AsyncSessionLocal = build_session_factory(engine)


async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def _ensure_sqlite_directory(database_url: str) -> None:
    database = make_url(database_url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


async def create_tables(bind: AsyncEngine) -> None:
    """Create the users and members tables if they do not exist."""
    # Register models with Base.metadata
    from database import member_models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db():
    """Verify the connection, create tables and seed default users."""
    from services.auth import seed_default_users

    if DATABASE_URL.startswith("sqlite"):
        _ensure_sqlite_directory(DATABASE_URL)

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")

        await create_tables(engine)

        async with AsyncSessionLocal() as session:
            created = await seed_default_users(session)
        if created:
            logger.info(f"Database initialized with {created} default users")
        return True
    except Exception as e:
        logger.error(f"Database initialization error: {e}")
        raise
