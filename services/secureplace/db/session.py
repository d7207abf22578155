"""
Database session management for the Secure Place API server.

Provides async SQLAlchemy session factories for read-write (primary) and
read-only (replica) access. Request handlers use the ``get_db`` /
``get_db_read`` dependencies; workflow components that must commit each
write independently (the profile store) take the primary factory itself.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from secureplace.config import settings
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

engine = create_async_engine(
    str(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# Read replica engine, primary if not configured
_read_url = (
    str(settings.database_read_url) if settings.database_read_url else str(settings.database_url)
)
engine_read = create_async_engine(
    _read_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

async_session_factory_read = async_sessionmaker(
    engine_read,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Verify both connection pools can reach the database."""
    logger.info("Initializing database connection (primary)")
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))

    if settings.database_read_url:
        logger.info("Initializing database connection (read replica)")
        async with engine_read.begin() as conn:
            await conn.execute(text("SELECT 1"))
    else:
        logger.info("No read replica configured, using primary for reads")


async def close_db() -> None:
    """Close database connection pools."""
    logger.info("Closing database connection pools")
    await engine.dispose()
    if settings.database_read_url:
        await engine_read.dispose()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the read-write session factory."""
    return async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession]:
    """
    Dependency that provides a read-write database session (primary).

    Commits when the request handler returns, rolls back if it raises.

    Usage:
        @router.post("/firms")
        async def create_firm(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_read() -> AsyncGenerator[AsyncSession]:
    """
    Dependency that provides a read-only database session (replica).

    Usage:
        @router.get("/employees")
        async def list_employees(db: AsyncSession = Depends(get_db_read)):
            ...
    """
    async with async_session_factory_read() as session:
        try:
            yield session
        finally:
            # Return the connection without an open implicit transaction
            await session.rollback()


async def get_db_health() -> bool:
    """Check database health for readiness probe."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


async def get_db_read_health() -> bool:
    """Check read replica health for readiness probe."""
    try:
        async with engine_read.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Read replica health check failed", error=str(e))
        return False
