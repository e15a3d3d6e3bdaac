"""Database infrastructure with async PostgreSQL.

The domain packages own their models and queries; this package only
manages the shared SQLAlchemy async engine (asyncpg driver) and the
liveness probe used by the health check.
"""

from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
    create_database_engine,
    get_engine,
)

__all__ = [
    "check_database_connection",
    "close_database",
    "create_database_engine",
    "get_engine",
]
