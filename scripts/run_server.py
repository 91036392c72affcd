from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import uvicorn

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from edusoluce.infrastructure.catalog import load_catalog  # noqa: E402
from edusoluce.infrastructure.config import get_settings  # noqa: E402
from edusoluce.infrastructure.exceptions import CatalogIntegrityError  # noqa: E402
from edusoluce.infrastructure.logging import get_logger  # noqa: E402

logger = get_logger("run_server")

APP_PATH = "edusoluce.web.main:app"


def build_run_options() -> dict[str, Any]:
    settings = get_settings()
    return {
        "host": os.getenv("SERVER_HOST", "0.0.0.0"),
        "port": int(os.getenv("SERVER_PORT", "8000")),
        "reload": settings.is_development(),
        "log_level": settings.logging.level.lower(),
    }


def check_catalog() -> None:
    """Fail fast on a broken catalog instead of inside the first request."""
    load_catalog(get_settings().app.resolved_catalog_path())


def main() -> None:
    try:
        check_catalog()
    except CatalogIntegrityError as exc:
        print(f"[run-server] {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    logger.info("Starting server with %s", get_settings().get_environment_info())
    uvicorn.run(APP_PATH, **build_run_options())


if __name__ == "__main__":
    main()
