from __future__ import annotations

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from edusoluce.application.api import SessionRegistry
from edusoluce.infrastructure.catalog import ContentCatalog, load_catalog
from edusoluce.infrastructure.config import ApplicationConfig, DatabaseConfig, get_settings
from edusoluce.infrastructure.db import create_database_engine, create_session_factory, init_db
from edusoluce.infrastructure.result_store import SqlResultStore


def get_app_config(request: Request) -> ApplicationConfig:
    config = getattr(request.app.state, "app_config", None)
    if config is None:
        config = get_settings().app
        request.app.state.app_config = config
    return config


def get_db_config(request: Request) -> DatabaseConfig:
    config = getattr(request.app.state, "db_config", None)
    if config is None:
        config = get_settings().database
        request.app.state.db_config = config
    return config


def get_catalog(request: Request) -> ContentCatalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        catalog = load_catalog(get_app_config(request).resolved_catalog_path())
        request.app.state.catalog = catalog
    return catalog


def get_registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        registry = SessionRegistry(get_app_config(request).max_active_sessions)
        request.app.state.registry = registry
    return registry


def get_session_factory(request: Request) -> sessionmaker[Session]:
    cached_factory = getattr(request.app.state, "session_factory", None)
    if cached_factory is not None:
        return cached_factory

    engine = create_database_engine(get_db_config(request))
    init_db(engine)
    session_factory = create_session_factory(engine)

    request.app.state.db_engine = engine
    request.app.state.session_factory = session_factory
    return session_factory


def get_result_store(request: Request) -> SqlResultStore:
    store = getattr(request.app.state, "result_store", None)
    if store is None:
        store = SqlResultStore(get_session_factory(request))
        request.app.state.result_store = store
    return store
