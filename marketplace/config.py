"""Configuration management for the marketplace identity service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_TOKEN_TTL = timedelta(hours=24)
DEFAULT_COOKIE_NAME = "token"

_ENV_KEYS = {
    "MARKETPLACE_DB_PATH": "database_path",
    "MARKETPLACE_TOKEN_SECRET": "token_secret",
    "MARKETPLACE_TOKEN_TTL_HOURS": "token_ttl_hours",
    "MARKETPLACE_COOKIE_NAME": "cookie_name",
    "MARKETPLACE_SECURE_COOKIES": "secure_cookies",
    "MARKETPLACE_LOG_LEVEL": "log_level",
}


def _env_flag(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off"}


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the credential store."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "marketplace.sqlite3").resolve(strict=False)


def _configured_database_path(raw_value: object, base_path: Path | None) -> Path:
    if not raw_value:
        return resolve_database_path(None)
    candidate = Path(str(raw_value)).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, loaded once at startup."""

    database_path: Path
    token_secret: str
    token_ttl: timedelta = DEFAULT_TOKEN_TTL
    cookie_name: str = DEFAULT_COOKIE_NAME
    secure_cookies: bool = True
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw configuration values."""

        secret = str(data.get("token_secret") or "").strip()
        if not secret:
            raise ValueError("A token secret must be configured (token_secret or MARKETPLACE_TOKEN_SECRET)")

        database_path = _configured_database_path(data.get("database_path"), base_path)

        ttl_hours = data.get("token_ttl_hours")
        if ttl_hours is None:
            token_ttl = DEFAULT_TOKEN_TTL
        else:
            hours = float(str(ttl_hours))
            if hours <= 0:
                raise ValueError("token_ttl_hours must be positive")
            token_ttl = timedelta(hours=hours)

        cookie_name = str(data.get("cookie_name") or DEFAULT_COOKIE_NAME).strip() or DEFAULT_COOKIE_NAME

        return Settings(
            database_path=database_path,
            token_secret=secret,
            token_ttl=token_ttl,
            cookie_name=cookie_name,
            secure_cookies=_env_flag(data.get("secure_cookies"), True),
            log_level=str(data.get("log_level") or "INFO").upper(),
        )


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the optional YAML configuration file."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "marketplace.yaml").resolve(strict=False)
    return candidate if candidate.exists() else None


def _load_raw(
    config_path: Optional[Path],
    environ: Optional[Mapping[str, str]],
) -> Tuple[Dict[str, object], Optional[Path]]:
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("MARKETPLACE_CONFIG"))

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw.update(loaded)
        base_path = config_path.parent

    for env_key, setting in _ENV_KEYS.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            raw[setting] = value.strip()

    return raw, base_path


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file and apply environment overrides."""

    raw, base_path = _load_raw(config_path, environ)
    return Settings.from_dict(raw, base_path=base_path)


def load_database_path(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Resolve the store location the same way :func:`load_settings` does.

    Maintenance commands use this so they work before a token secret is configured.
    """

    raw, base_path = _load_raw(config_path, environ)
    return _configured_database_path(raw.get("database_path"), base_path)


__all__ = ["Settings", "load_database_path", "load_settings", "resolve_config_path", "resolve_database_path"]
