from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edusoluce.infrastructure.catalog import load_catalog
from edusoluce.infrastructure.config import get_settings
from edusoluce.infrastructure.logging import get_logger
from edusoluce.web.routes import api

logger = get_logger(__name__)


def create_application() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router)

    @app.on_event("startup")
    async def startup_event() -> None:
        # A broken catalog must stop the server before it accepts sessions.
        if getattr(app.state, "catalog", None) is None:
            app.state.catalog = load_catalog(settings.app.resolved_catalog_path())
        logger.info("EduSoluce API ready (%s)", settings.app.environment)

    return app


app = create_application()
