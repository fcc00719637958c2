from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from marketplace.config import DEFAULT_TOKEN_TTL, Settings, load_database_path, load_settings, resolve_database_path


def _write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(body, encoding="utf-8")
    return config_path


def test_load_settings_from_yaml(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        "database_path: data/store.sqlite3\n"
        "token_secret: yaml-secret\n"
        "token_ttl_hours: 2\n"
        "cookie_name: session\n"
        "secure_cookies: false\n"
        "log_level: debug\n",
    )

    settings = load_settings(config_path, environ={})

    assert settings.database_path == (tmp_path / "data" / "store.sqlite3").resolve()
    assert settings.token_secret == "yaml-secret"
    assert settings.token_ttl == timedelta(hours=2)
    assert settings.cookie_name == "session"
    assert settings.secure_cookies is False
    assert settings.log_level == "DEBUG"


def test_environment_overrides_yaml(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "token_secret: yaml-secret\nsecure_cookies: true\n")
    db_path = tmp_path / "env.sqlite3"

    settings = load_settings(
        config_path,
        environ={
            "MARKETPLACE_TOKEN_SECRET": "env-secret",
            "MARKETPLACE_DB_PATH": str(db_path),
            "MARKETPLACE_SECURE_COOKIES": "off",
            "MARKETPLACE_TOKEN_TTL_HOURS": "0.5",
            "MARKETPLACE_LOG_LEVEL": "   ",
        },
    )

    assert settings.token_secret == "env-secret"
    assert settings.database_path == db_path.resolve()
    assert settings.secure_cookies is False
    assert settings.token_ttl == timedelta(minutes=30)
    assert settings.log_level == "INFO"


def test_defaults_apply_without_file(tmp_path: Path) -> None:
    settings = load_settings(
        environ={
            "MARKETPLACE_CONFIG": str(_write_config(tmp_path, "{}\n")),
            "MARKETPLACE_TOKEN_SECRET": "only-secret",
        }
    )

    assert settings.token_ttl == DEFAULT_TOKEN_TTL
    assert settings.cookie_name == "token"
    assert settings.secure_cookies is True
    assert settings.database_path == resolve_database_path(None)


def test_missing_secret_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "database_path: store.sqlite3\n")

    with pytest.raises(ValueError):
        load_settings(config_path, environ={})


def test_non_positive_ttl_is_rejected() -> None:
    with pytest.raises(ValueError):
        Settings.from_dict({"token_secret": "secret", "token_ttl_hours": 0})


def test_config_must_be_a_mapping(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "- just\n- a list\n")

    with pytest.raises(ValueError):
        load_settings(config_path, environ={"MARKETPLACE_TOKEN_SECRET": "secret"})


def test_database_path_resolves_without_secret(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "database_path: store.sqlite3\n")

    assert load_database_path(config_path, environ={}) == (tmp_path / "store.sqlite3").resolve()
    assert load_database_path(
        config_path,
        environ={"MARKETPLACE_DB_PATH": str(tmp_path / "env.sqlite3")},
    ) == (tmp_path / "env.sqlite3").resolve()
    assert load_database_path(environ={"MARKETPLACE_CONFIG": str(config_path)}) == (
        tmp_path / "store.sqlite3"
    ).resolve()
