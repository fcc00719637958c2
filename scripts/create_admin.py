import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from main import prompt_for_admin_password
from marketplace.config import load_database_path
from marketplace.database import open_database
from marketplace.errors import DuplicateEmail
from marketplace.security import PasswordHasher


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a marketplace administrator")
    parser.add_argument("first_name", help="Administrator first name")
    parser.add_argument("last_name", help="Administrator last name")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to the configured database_path)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (default: MARKETPLACE_CONFIG or config/marketplace.yaml)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    password = prompt_for_admin_password()
    if password is None:
        raise SystemExit("Failed to set password after three attempts.")

    db_path = args.db_path or str(load_database_path(Path(args.config).expanduser() if args.config else None))
    database = open_database(db_path)

    try:
        admin = database.create_admin(
            first_name=args.first_name.strip(),
            last_name=args.last_name.strip(),
            email=args.email,
            password_hash=PasswordHasher().hash(password),
        )
    except DuplicateEmail as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created administrator {admin.id}: {admin.first_name} {admin.last_name} <{admin.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
