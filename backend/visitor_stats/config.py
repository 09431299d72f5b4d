from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


DEFAULT_DATABASE_URL = "sqlite:///database/visitor.db"


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _csv(value: str | None, default: List[str]) -> List[str]:
    if not value:
        return default
    return [entry.strip() for entry in value.split(",") if entry.strip()]


@dataclass
class Settings:
    app_env: str
    app_base_path: str
    cors_origins: List[str]
    max_content_length_mb: int

    database_url: str
    fail_open_on_error: bool

    log_level: str
    port: int

    @classmethod
    def from_env(cls) -> "Settings":
        app_base_path = os.getenv("APP_BASE_PATH", "").strip()
        if app_base_path and not app_base_path.startswith("/"):
            app_base_path = f"/{app_base_path}"
        if app_base_path.endswith("/"):
            app_base_path = app_base_path.rstrip("/")

        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            app_base_path=app_base_path,
            cors_origins=_csv(os.getenv("CORS_ORIGINS"), ["*"]),
            max_content_length_mb=_as_int(os.getenv("MAX_CONTENT_LENGTH_MB"), 2),
            database_url=os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL,
            fail_open_on_error=_as_bool(os.getenv("FAIL_OPEN_ON_ERROR"), True),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            port=_as_int(os.getenv("PORT"), 3000),
        )
