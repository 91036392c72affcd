"""
Database engine and session factory built from `DatabaseConfig`.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DatabaseConfig, get_settings
from .exceptions import handle_database_error
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Create the SQLAlchemy engine for the result store.

    An in-memory sqlite database shares one connection across threads so the
    worker threads used for async saves see the same tables.

    Example:
        >>> engine = create_database_engine(DatabaseConfig(sqlite_path=":memory:"))
    """
    if config is None:
        config = get_settings().database

    connection_url = config.get_connection_url()
    engine_options = config.get_engine_options()
    if config.backend == "sqlite":
        engine_options["connect_args"] = {"check_same_thread": False}
        if config.sqlite_path == ":memory:":
            engine_options["poolclass"] = StaticPool

    logger.info("Creating database engine for %s backend", config.backend)
    logger.debug("Connection URL: %s@***", connection_url.split("@")[0])

    try:
        return create_engine(connection_url, **engine_options)
    except SQLAlchemyError as e:
        logger.error("Failed to create database engine: %s", e)
        raise handle_database_error(e, "create engine") from e


def create_session_factory(engine: Engine | None = None) -> sessionmaker:
    """
    Example:
        >>> SessionLocal = create_session_factory(engine)
        >>> with SessionLocal() as session:
        ...     pass
    """
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables; migrations remain the source of truth in deployments."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ensured")
