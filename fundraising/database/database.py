import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
import structlog

from fundraising.core.config import get_settings
from fundraising.models import Base

settings = get_settings()
logger = structlog.get_logger(__name__)


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite gets one connection per session"""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False, poolclass=NullPool)

    return create_async_engine(
        database_url,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=False  # Disable SQLAlchemy query logging
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = create_engine_for(settings.database_url)

# Create session maker
AsyncSessionLocal = create_session_factory(engine)


async def wait_for_db(max_retries=30, delay=2):
    """Wait for database to be available with retries"""
    for attempt in range(max_retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection established")
            return True
        except Exception as e:
            logger.warning(
                "Database connection attempt failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e)
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(delay)
            else:
                logger.error("Failed to connect to database after all retries")
                raise
    return False


async def init_db():
    """Initialize database tables"""
    try:
        # Wait for database to be available
        await wait_for_db()

        # Create tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise


async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception as e:
            await db.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
