import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings, IS_PRODUCTION

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

# Process-wide engine and session factory, owned by init_db/close_db
engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker] = None


def resolve_database_url(url: Optional[str] = None) -> str:
    """
    Pick the database URL and map plain PostgreSQL URLs onto the async driver.

    Raises:
        RuntimeError: If SQLite is configured while running in production
    """
    database_url = url or settings.database_url or "sqlite+aiosqlite:///./sql_app.db"

    if IS_PRODUCTION and "sqlite" in database_url.lower():
        raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the process-wide engine and create all tables.
    This should be called once on application startup.
    """
    global engine, AsyncSessionLocal

    if engine is not None:
        return engine

    engine = create_async_engine(resolve_database_url(url), echo=False, future=True)
    AsyncSessionLocal = create_session_factory(engine)

    async with engine.begin() as conn:
        # Import models here to ensure they're registered with Base
        from database_models import User  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database engine initialized (%s)", engine.url.get_backend_name())
    return engine


async def close_db() -> None:
    """Dispose the engine and its connection pool on shutdown."""
    global engine, AsyncSessionLocal

    if engine is None:
        return
    await engine.dispose()
    engine = None
    AsyncSessionLocal = None
    logger.info("Database engine disposed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields a database session.
    Use this in FastAPI route dependencies to get a database session.

    Example:
        @app.get("/users")
        async def get_users(db: AsyncSession = Depends(get_db)):
            # Use db here
            pass
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("Database is not initialized. Call init_db() on startup.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
