"""
Shared database configuration utilities for all services.

SQLite is used for local development and tests, PostgreSQL in production.
The helpers here make both behave the same for the things services rely on:
multi-threaded access to one engine and write transactions that serialize
at BEGIN rather than at first write.
"""

from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def get_sqlite_connect_args() -> Dict[str, Any]:
    """
    Get SQLite connection arguments.

    ``timeout`` is the busy timeout in seconds: a writer waiting on another
    writer's lock blocks this long before failing with "database is locked".
    """
    return {
        "check_same_thread": False,
        "timeout": 30,
    }


def get_pool_settings() -> Dict[str, Any]:
    """Connection pool settings for server databases."""
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


def enable_sqlite_immediate_transactions(engine: Engine) -> None:
    """
    Make every transaction on a SQLite engine start with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first DML statement, so two transactions
    can both read before either one writes. Taking the write lock at BEGIN
    means a read-then-insert sequence cannot interleave with another writer.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_service_engine(database_url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """
    Create a sync engine configured for the database behind ``database_url``.

    Args:
        database_url: The database URL
        echo: Whether to echo SQL statements
        **kwargs: Additional arguments to pass to create_engine

    Returns:
        Configured Engine instance
    """
    existing_connect_args = kwargs.pop("connect_args", {})

    if is_sqlite_database(database_url):
        connect_args = {**get_sqlite_connect_args(), **existing_connect_args}
        engine = create_engine(
            database_url, echo=echo, future=True, connect_args=connect_args, **kwargs
        )
        enable_sqlite_immediate_transactions(engine)
        return engine

    pool_settings = {**get_pool_settings(), **kwargs}
    return create_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args=existing_connect_args,
        **pool_settings,
    )


def is_sqlite_database(database_url: str) -> bool:
    """
    Check if the given database URL is for SQLite.

    Args:
        database_url: The database URL to check

    Returns:
        True if the URL is for SQLite, False otherwise
    """
    return database_url.lower().startswith("sqlite")


def get_database_type(database_url: str) -> str:
    """
    Get the database type from a database URL.

    Args:
        database_url: The database URL

    Returns:
        The database type (e.g., 'sqlite', 'postgresql', 'mysql')
    """
    url_lower = database_url.lower()
    if url_lower.startswith("sqlite"):
        return "sqlite"
    elif url_lower.startswith("postgresql") or url_lower.startswith("postgres://"):
        return "postgresql"
    elif url_lower.startswith("mysql"):
        return "mysql"
    else:
        return "unknown"
