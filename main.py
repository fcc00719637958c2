"""Command-line interface for the marketplace identity service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

from marketplace.config import load_database_path, load_settings
from marketplace.database import Database
from marketplace.errors import DuplicateEmail
from marketplace.security import PasswordHasher

logger = logging.getLogger("marketplace.main")

MIN_ADMIN_PASSWORD_LENGTH = 12

_CONFIG_HELP = "Path to a YAML settings file (default: MARKETPLACE_CONFIG or config/marketplace.yaml)"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Marketplace identity service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    init_parser = subparsers.add_parser("init-db", help="Initialise the credential store")
    init_parser.add_argument("--config", default=None, help=_CONFIG_HELP)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP identity service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--config",
        default=None,
        help=_CONFIG_HELP,
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    admin_parser = subparsers.add_parser("admin", help="Launch the interactive administrator console")
    admin_parser.add_argument("--config", default=None, help=_CONFIG_HELP)

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(config_path: str | None = None) -> Database:
    try:
        db_path = load_database_path(Path(config_path).expanduser() if config_path else None)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(
    *,
    host: str,
    port: int,
    config_path: str | None,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from marketplace.application import create_application
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    try:
        settings = load_settings(Path(config_path).expanduser() if config_path else None)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    logging.getLogger().setLevel(settings.log_level)

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting identity API on %s://%s:%s", protocol, host, port)

    app = create_application(settings=settings)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _run_admin_cli(database: Database) -> None:
    """Provide an interactive console for managing administrator accounts."""

    print("Marketplace Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List administrators")
            print("  2) Add a new administrator")
            print("  3) Exit")

            choice = input("Enter choice [1-3]: ").strip()

            if choice == "1":
                _list_admins(database)
            elif choice == "2":
                _add_admin(database)
            elif choice == "3":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def _list_admins(database: Database) -> None:
    admins = database.list_admins()
    if not admins:
        print("No administrators are currently registered.")
        return

    print(f"{len(admins)} administrator(s) found:")
    print(f"{'ID':<36}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 110)
    for admin in admins:
        created = admin.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        name = f"{admin.first_name} {admin.last_name}"
        print(f"{admin.id:<36}  {name:<24}  {admin.email:<32}  {created}")


def _add_admin(database: Database) -> None:
    print("\nCreate a new administrator (leave the first name blank to cancel).")
    first_name = input("First name: ").strip()
    if not first_name:
        print("Administrator creation cancelled.")
        return

    last_name = input("Last name: ").strip()
    email = input("Email address: ").strip()
    if not last_name or not email:
        print("Last name and email are required.")
        return

    password = prompt_for_admin_password()
    if password is None:
        print("Aborted creating administrator.")
        return

    try:
        admin = database.create_admin(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=PasswordHasher().hash(password),
        )
    except DuplicateEmail:
        print(f"An administrator with email {email} already exists.")
        return

    print(f"Created administrator {admin.id}: {admin.first_name} {admin.last_name} <{admin.email}>")


def prompt_for_admin_password() -> str | None:
    """Ask twice for a new administrator password; ``None`` after three failed attempts."""

    for _ in range(3):
        password = getpass(f"Password (min {MIN_ADMIN_PASSWORD_LENGTH} characters): ")
        if len(password) < MIN_ADMIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(
            host=args.host,
            port=args.port,
            config_path=args.config,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
    elif args.command == "admin":
        _run_admin_cli(_initialise_database(args.config))
    elif args.command == "init-db":
        _initialise_database(args.config)
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
