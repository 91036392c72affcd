from __future__ import annotations

from pathlib import Path

import pytest

from edusoluce.infrastructure.config import reset_settings
from edusoluce.infrastructure.exceptions import CatalogIntegrityError
from scripts import run_server


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


def test_build_run_options_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SERVER_HOST", "127.0.0.1")
    monkeypatch.setenv("SERVER_PORT", "9100")
    monkeypatch.setenv("APP_ENVIRONMENT", "production")

    options = run_server.build_run_options()

    assert options["host"] == "127.0.0.1"
    assert options["port"] == 9100
    assert options["reload"] is False
    assert options["log_level"] == run_server.get_settings().logging.level.lower()


def test_main_starts_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, dict]] = []

    def fake_run(app_path: str, **kwargs) -> None:
        calls.append((app_path, kwargs))

    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)

    run_server.main()

    assert calls, "uvicorn was not started"
    assert calls[0][0] == "edusoluce.web.main:app"
    assert "port" in calls[0][1]


def test_main_exits_on_broken_catalog(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    broken = tmp_path / "catalog.json"
    broken.write_text("{not json", encoding="utf-8")
    monkeypatch.setenv("APP_CATALOG_PATH", str(broken))
    reset_settings()

    started: list[str] = []
    monkeypatch.setattr(run_server.uvicorn, "run", lambda app_path, **kwargs: started.append(app_path))

    with pytest.raises(SystemExit) as exc_info:
        run_server.main()

    assert exc_info.value.code == 1
    assert isinstance(exc_info.value.__cause__, CatalogIntegrityError)
    assert started == []
