"""
Centralized configuration management for the EduSoluce assessment engine.

Settings are read from the environment (and optionally a JSON file) through
pydantic-settings, one section per concern.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "catalog_data" / "catalog.json"


class DatabaseConfig(BaseSettings):
    """
    Database configuration for the result store.

    Example:
        >>> DatabaseConfig(backend="sqlite", sqlite_path="./test.db").get_connection_url()
        'sqlite:///./test.db'
    """

    backend: Literal["sqlite", "mysql"] = Field("sqlite", description="Database backend type")

    sqlite_path: str | None = Field("./edusoluce.db", description="SQLite database file path")

    mysql_host: str | None = Field("localhost", description="MySQL host")
    mysql_port: int | None = Field(3306, ge=1, le=65535, description="MySQL port")
    mysql_user: str | None = Field("root", description="MySQL username")
    mysql_password: str | None = Field("", description="MySQL password")
    mysql_database: str | None = Field("edusoluce", description="MySQL database name")
    mysql_charset: str = Field("utf8mb4", description="MySQL character set")

    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    pool_recycle: int = Field(3600, ge=60, description="Connection pool recycle time (seconds)")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = SettingsConfigDict(env_prefix="DB_", case_sensitive=False)

    @field_validator("sqlite_path")
    @classmethod
    def validate_sqlite_path(cls, v: str | None) -> str | None:
        """In-memory databases pass through; file paths get a .db suffix."""
        if v and v != ":memory:":
            path = Path(v)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    @model_validator(mode="after")
    def validate_mysql_config(self) -> DatabaseConfig:
        if self.backend == "mysql":
            missing = [
                name
                for name in ("mysql_host", "mysql_user", "mysql_database")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"MySQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        """
        Build the SQLAlchemy connection URL.

        Raises:
            ValueError: If backend is unsupported
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        elif self.backend == "mysql":
            password_part = f":{self.mysql_password}" if self.mysql_password else ""
            return (
                f"mysql+pymysql://{self.mysql_user}{password_part}@{self.mysql_host}:"
                f"{self.mysql_port}/{self.mysql_database}?charset={self.mysql_charset}"
            )
        raise ValueError(f"Unsupported database backend: {self.backend}")

    def get_engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": self.pool_pre_ping}
        if self.backend == "mysql":
            options["pool_recycle"] = self.pool_recycle
        return options


class LoggingConfig(BaseSettings):
    """Logging levels, output format and file rotation."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/edusoluce.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)

    def get_file_handler_config(self) -> dict[str, Any] | None:
        if not self.file_path:
            return None

        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class ApplicationConfig(BaseSettings):
    """
    Application-wide settings: environment, scoring policy and catalog source.

    Example:
        >>> config = get_settings()
        >>> config.app.passing_score
        70
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")
    title: str = Field("EduSoluce Assessments", description="API title")

    passing_score: int = Field(70, ge=0, le=100, description="Overall percentage needed to pass")
    default_mode: Literal["questions", "maturity"] = Field(
        "questions", description="Scoring mode used when a session does not choose one"
    )
    catalog_path: str | None = Field(None, description="Override for the bundled catalog file")

    enable_result_export: bool = Field(True, description="Enable result export endpoints")
    max_active_sessions: int = Field(1000, ge=1, description="In-process session registry size")

    model_config = SettingsConfigDict(env_prefix="APP_", case_sensitive=False)

    @model_validator(mode="after")
    def debug_implies_development(self) -> ApplicationConfig:
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self

    def resolved_catalog_path(self) -> Path:
        return Path(self.catalog_path) if self.catalog_path else DEFAULT_CATALOG_PATH


class Settings:
    """
    Lazily populated container for every configuration section.

    Example:
        >>> settings = get_settings()
        >>> settings.database.get_connection_url()
        'sqlite:///./edusoluce.db'
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._database: DatabaseConfig | None = None
        self._logging: LoggingConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        if self._database is None:
            self._database = DatabaseConfig()
        return self._database

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=level)
        return self._logging

    def is_development(self) -> bool:
        return self.app.environment == "development"

    def is_production(self) -> bool:
        return self.app.environment == "production"

    def is_testing(self) -> bool:
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "database_backend": self.database.backend,
            "logging_level": self.logging.level,
            "passing_score": self.app.passing_score,
            "default_mode": self.app.default_mode,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance (cached)."""
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON file of ``{"section": {"key": value}}`` objects.

    Sections map onto the environment prefixes (``app`` -> ``APP_``,
    ``db`` -> ``DB_``, ``log`` -> ``LOG_``).

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ValueError: If file format is unsupported
    """
    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    with open(config_path, encoding="utf-8") as f:
        config_data = json.load(f)

    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                os.environ[f"{section.upper()}_{key.upper()}"] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs: Any) -> Settings:
    """
    Override settings through environment variables, e.g.
    ``override_settings(app_passing_score=80, db_sqlite_path=":memory:")``.
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
