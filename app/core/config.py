from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so type casting and validation live in one place
    return os.environ.get(name, default).strip()


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    invitation_ttl_days: int

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower() or "false"
    port_raw = _getenv("PORT", "8000")
    ttl_raw = _getenv("INVITATION_TTL_DAYS", "7")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _parse_int("PORT", port_raw)

    invitation_ttl_days = _parse_int("INVITATION_TTL_DAYS", ttl_raw)
    if invitation_ttl_days < 1:
        raise ValueError(
            f"INVITATION_TTL_DAYS must be at least 1 (got {invitation_ttl_days})"
        )

    database_url = _getenv("DATABASE_URL", "") or None

    settings = Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        invitation_ttl_days=invitation_ttl_days,
    )
    # Without a database every membership would vanish on restart
    if settings.is_prod and settings.database_url is None:
        raise ValueError("DATABASE_URL is required when APP_ENV=prod")
    return settings


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
