from __future__ import annotations

import json
import secrets
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from watchpost_core.home import WatchPostPaths


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    core_port: int = Field(default=8090, ge=1, le=65535)


class PathOverrides(BaseModel):
    db_dir: str | None = None
    logs_dir: str | None = None


class AuthConfig(BaseModel):
    install_token: str | None = Field(default=None)
    session_max_age_days: int = Field(
        default=30, ge=1, description="Lifetime of the UI login cookie."
    )


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class UiConfig(BaseModel):
    timezone: str = Field(
        default="UTC",
        description="IANA time zone used to read and display token expiry dates.",
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class CoreConfig(BaseModel):
    version: str = Field(default="1")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    paths: PathOverrides = Field(default_factory=PathOverrides)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    ui: UiConfig = Field(default_factory=UiConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_core_config(paths: WatchPostPaths) -> CoreConfig:
    """Load config from ${WATCHPOST_HOME}/config/core.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.core_config_path
    if not config_path.exists():
        return CoreConfig()

    raw = _read_json(config_path)
    return CoreConfig.model_validate(raw)


def write_core_config(paths: WatchPostPaths, config: CoreConfig) -> None:
    """Persist config to ${WATCHPOST_HOME}/config/core.json."""

    payload = config.model_dump(mode="json", exclude_none=True)
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    paths.core_config_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def ensure_install_token(paths: WatchPostPaths, config: CoreConfig) -> CoreConfig:
    """Ensure the install token exists and is stored in config.

    The install token authenticates as the built-in super admin. If missing, a new
    one is generated and persisted to core.json.
    """

    raw = (config.auth.install_token or "").strip()
    if raw:
        return config

    token = secrets.token_urlsafe(32)
    updated_auth = config.auth.model_copy(update={"install_token": token})
    updated = config.model_copy(update={"auth": updated_auth})
    write_core_config(paths, updated)
    return updated


def resolve_configured_paths(paths: WatchPostPaths, config: CoreConfig) -> WatchPostPaths:
    """Apply user-configurable path overrides from config.

    config/ and tmp/ always stay under the home dir.
    """

    def _resolve_dir(raw: str | None, default: Path) -> Path:
        if raw is None or not str(raw).strip():
            return default
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = (paths.home / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    db_dir = _resolve_dir(config.paths.db_dir, paths.db_dir)
    logs_dir = _resolve_dir(config.paths.logs_dir, paths.logs_dir)

    for p in (db_dir, logs_dir):
        p.mkdir(parents=True, exist_ok=True)

    return WatchPostPaths(
        home=paths.home,
        db_dir=db_dir,
        logs_dir=logs_dir,
        config_dir=paths.config_dir,
        tmp_dir=paths.tmp_dir,
    )
