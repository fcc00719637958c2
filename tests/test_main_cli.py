from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main
from main import _parse_args
from marketplace.database import AccountKind, Database
from marketplace.security import PasswordHasher


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.port == 8000


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_admin_and_init_db_subcommands_available() -> None:
    assert _parse_args(["admin"]).command == "admin"
    assert _parse_args(["init-db"]).command == "init-db"


def test_init_db_uses_environment_path(tmp_path: Path, monkeypatch, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setenv("MARKETPLACE_DB_PATH", str(db_path))

    main.main(["init-db"])

    assert db_path.exists()
    assert "complete" in capsys.readouterr().out


def test_init_db_follows_config_file_database_path(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text("database_path: store.sqlite3\n", encoding="utf-8")
    monkeypatch.delenv("MARKETPLACE_DB_PATH", raising=False)
    monkeypatch.delenv("MARKETPLACE_TOKEN_SECRET", raising=False)
    monkeypatch.setenv("MARKETPLACE_CONFIG", str(config_path))

    database = main._initialise_database()

    assert database.path == (tmp_path / "store.sqlite3").resolve()
    assert database.path.exists()


def test_admin_accepts_config_option(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "admin.yaml"
    config_path.write_text("database_path: admins.sqlite3\n", encoding="utf-8")
    monkeypatch.delenv("MARKETPLACE_DB_PATH", raising=False)

    args = _parse_args(["admin", "--config", str(config_path)])
    database = main._initialise_database(args.config)

    assert args.command == "admin"
    assert database.path == (tmp_path / "admins.sqlite3").resolve()


def test_admin_console_creates_administrator(tmp_path: Path, monkeypatch, capsys) -> None:
    database = Database(tmp_path / "admin.sqlite3")
    database.initialize()

    answers = iter(["2", "Ada", "Root", "root@example.com", "1", "3"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(answers))
    monkeypatch.setattr(main, "getpass", lambda _prompt="": "a-long-admin-password")

    main._run_admin_cli(database)

    admins = database.list_admins()
    assert [admin.email for admin in admins] == ["root@example.com"]
    output = capsys.readouterr().out
    assert "Created administrator" in output
    assert "1 administrator(s) found" in output

    _, password_hash = database.get_credentials(AccountKind.ADMIN, "root@example.com")  # type: ignore[misc]
    assert PasswordHasher().verify("a-long-admin-password", password_hash)


def test_short_admin_password_is_refused(monkeypatch, capsys) -> None:
    monkeypatch.setattr(main, "getpass", lambda _prompt="": "short")

    assert main.prompt_for_admin_password() is None
    assert "too short" in capsys.readouterr().out
