"""Async database engine lifecycle and liveness probe.

The persistence layer itself belongs to the domain packages; this module
only owns the shared engine (one connection pool per process), its
disposal at shutdown, and the ``SELECT 1`` probe behind the health check.

The module uses a singleton pattern through _DatabaseManager to ensure
a single engine instance across the application lifecycle.
"""

import asyncio
import threading

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.core.config import DatabaseConfig, get_settings
from src.core.exceptions import ConfigurationError

POOL_RECYCLE_SECONDS = 3600  # 1 hour
COMMAND_TIMEOUT_SECONDS = 60


def create_database_engine(db_config: DatabaseConfig | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Args:
        db_config: Optional database configuration. If not provided, uses
            the configuration from settings.

    Returns:
        AsyncEngine: Configured async engine instance.

    Raises:
        ConfigurationError: If no database URL is configured.
    """
    if db_config is None:
        db_config = get_settings().database_config

    if db_config.database_url is None:
        raise ConfigurationError(
            "Database URL is not configured",
            problems=["DATABASE_CONFIG.DATABASE_URL: Field required"],
        )

    engine = create_async_engine(
        db_config.database_url,
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=db_config.pool_pre_ping,
        echo=db_config.echo,
        pool_recycle=POOL_RECYCLE_SECONDS,
        connect_args={"command_timeout": COMMAND_TIMEOUT_SECONDS},
    )

    logger.info(
        "Created database engine - pool_size: {}, max_overflow: {}",
        db_config.pool_size,
        db_config.max_overflow,
    )
    return engine


class _DatabaseManager:
    """Internal class to manage the database engine instance.

    This class provides a singleton pattern without using global statements,
    which is preferred by our linting rules.
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._lock = threading.Lock()

    def get_engine(self) -> AsyncEngine:
        """Get or create the async engine instance.

        Returns:
            AsyncEngine: The engine instance.
        """
        if self._engine is None:
            with self._lock:
                # Double-checked locking pattern
                if self._engine is None:
                    self._engine = create_database_engine()
        return self._engine

    async def close(self) -> None:
        """Close the database engine and cleanup connections."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
            self._engine = None

    def reset(self) -> None:
        """Reset the manager state. Used primarily for testing."""
        self._engine = None


# Singleton instance
_db_manager = _DatabaseManager()


def get_engine() -> AsyncEngine:
    """Get or create the global async engine instance.

    Returns:
        AsyncEngine: The global engine instance.
    """
    return _db_manager.get_engine()


async def close_database() -> None:
    """Close the database engine and cleanup connections.

    This should be called during application shutdown to ensure
    all database connections are properly closed.
    """
    await _db_manager.close()


async def check_database_connection(
    timeout: float = 5.0,
) -> tuple[bool, str | None]:
    """Check if database connection is available.

    A probe that does not complete within ``timeout`` seconds counts as a
    failure.

    Args:
        timeout: Upper bound for the whole probe in seconds.

    Returns:
        tuple[bool, str | None]: A tuple containing:
            - bool: True if connection successful, False otherwise
            - str | None: Error message if connection failed, None if successful

    Example:
        is_healthy, error = await check_database_connection()
        if not is_healthy:
            logger.error("Database unhealthy: {}", error)
    """
    try:
        async with asyncio.timeout(timeout):
            engine = get_engine()
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                _ = result.scalar()
    except TimeoutError:
        return False, f"Database probe timed out after {timeout}s"
    except ConfigurationError as e:
        return False, e.message
    except (SQLAlchemyError, OSError) as e:
        return False, str(e)
    else:
        return True, None
