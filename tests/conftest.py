from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402

from edusoluce.infrastructure.catalog import ContentCatalog, load_catalog  # noqa: E402


@pytest.fixture(scope="session")
def catalog() -> ContentCatalog:
    return load_catalog()
