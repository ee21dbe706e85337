# src/db/database.py
from core.config import settings
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from sqlalchemy.pool import NullPool
from utils.logger import setup_logger

logger = setup_logger("DATABASE")


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite") or settings.ENVIRONMENT == "testing":
        options = {"poolclass": NullPool}
    else:
        options = {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        }
    if "postgresql" in database_url:
        options["connect_args"] = {
            "server_settings": {
                "jit": "off",
                "application_name": "prescription_lifecycle",
            },
        }
    return options


def build_engine(database_url: str):
    return create_async_engine(
        database_url, echo=settings.DEBUG, **_engine_options(database_url)
    )


# Create SQLAlchemy engine with async support
engine = build_engine(settings.DATABASE_URL)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session committed on success"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error(f"Database session error: {exc}")
            raise


async def create_tables():
    """Create all tables known to Base.metadata"""
    import models  # noqa: F401  registers the mapped classes

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


async def check_db_connection() -> bool:
    """Check database connection health"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def disconnect_db():
    """Disconnect from database"""
    await engine.dispose()
