"""
Common utilities and configurations for Bookwell services.
"""

from services.common.database_config import (
    create_service_engine,
    get_database_type,
    is_sqlite_database,
)

__all__ = [
    "create_service_engine",
    "get_database_type",
    "is_sqlite_database",
]
