"""SQLite-backed credential store for profiles and administrators."""
from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Tuple

from .config import resolve_database_path
from .errors import DuplicateEmail, StoreError
from .models import Account, Admin, Profile, Role

logger = logging.getLogger("marketplace.database")

# Profile columns the self-service update path is allowed to write.
UPDATABLE_PROFILE_COLUMNS = ("first_name", "last_name", "email", "profession")
FILTERABLE_PROFILE_COLUMNS = ("type", "first_name", "last_name", "profession")


class AccountKind(str, Enum):
    """Tables that hold credentials."""

    PROFILE = "profiles"
    ADMIN = "admins"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Database:
    """Simple wrapper around SQLite for persisting marketplace accounts."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._path)
        except sqlite3.Error as exc:
            raise StoreError() from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.DatabaseError as exc:
            raise StoreError() from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL CHECK (type IN ('client', 'contractor')),
                    profession TEXT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT,
                    balance REAL NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CHECK (profession IS NULL OR type = 'contractor')
                );

                CREATE TABLE IF NOT EXISTS admins (
                    id TEXT PRIMARY KEY,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_profiles_type ON profiles(type);
                CREATE INDEX IF NOT EXISTS idx_profiles_last_name ON profiles(last_name);
                """
            )
        logger.debug("Credential store schema ready at %s", self._path)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def create_profile(
        self,
        *,
        profile_type: Role,
        first_name: str,
        last_name: str,
        email: str,
        profession: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> Profile:
        """Insert a new profile with a zero balance.

        The insert is a single statement guarded by the UNIQUE constraint on
        ``email``; a collision raises :class:`DuplicateEmail`.
        """

        profile_id = str(uuid.uuid4())
        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)
        normalized_email = normalize_email(email)

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO profiles (
                        id, type, profession, first_name, last_name, email,
                        password_hash, balance, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (
                        profile_id,
                        Role(profile_type).value,
                        profession,
                        first_name,
                        last_name,
                        normalized_email,
                        password_hash,
                        serialized,
                        serialized,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if self._is_email_conflict(exc):
                    raise DuplicateEmail() from exc
                raise

        return Profile(
            id=profile_id,
            type=Role(profile_type),
            profession=profession,
            first_name=first_name,
            last_name=last_name,
            email=normalized_email,
            balance=0.0,
            created_at=created_at,
            updated_at=created_at,
        )

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        row = self._fetch_one(AccountKind.PROFILE, "id", profile_id)
        return self._row_to_profile(row) if row is not None else None

    def update_profile(self, profile_id: str, fields: Mapping[str, object]) -> Optional[Profile]:
        """Write the whitelisted columns present in ``fields`` and bump ``updated_at``."""

        updates: List[str] = []
        values: List[object] = []
        for column in UPDATABLE_PROFILE_COLUMNS:
            if column not in fields:
                continue
            value = fields[column]
            if column == "email" and isinstance(value, str):
                value = normalize_email(value)
            updates.append(f"{column} = ?")
            values.append(value)

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(_current_timestamp()))
        values.append(profile_id)
        query = f"UPDATE profiles SET {', '.join(updates)} WHERE id = ?"

        with self._connect() as conn:
            try:
                cursor = conn.execute(query, values)
            except sqlite3.IntegrityError as exc:
                if self._is_email_conflict(exc):
                    raise DuplicateEmail() from exc
                raise
            if cursor.rowcount == 0:
                return None

        return self.get_profile(profile_id)

    def find_and_count(
        self,
        filters: Mapping[str, object],
        *,
        offset: int,
        limit: int,
    ) -> Tuple[List[Profile], int]:
        """Return one page of profiles matching ``filters`` and the total match count."""

        clauses: List[str] = []
        params: List[object] = []
        for column in FILTERABLE_PROFILE_COLUMNS:
            if column in filters:
                value = filters[column]
                clauses.append(f"{column} = ?")
                params.append(value.value if isinstance(value, Role) else value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) AS n FROM profiles{where}", params).fetchone()["n"]
            rows = conn.execute(
                f"SELECT * FROM profiles{where} ORDER BY rowid LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [self._row_to_profile(row) for row in rows], int(total)

    # ------------------------------------------------------------------
    # Administrators
    # ------------------------------------------------------------------
    def create_admin(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: str,
    ) -> Admin:
        if not password_hash:
            raise ValueError("Administrators must have a password")

        admin_id = str(uuid.uuid4())
        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)
        normalized_email = normalize_email(email)

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO admins (id, first_name, last_name, email, password_hash, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (admin_id, first_name, last_name, normalized_email, password_hash, serialized, serialized),
                )
            except sqlite3.IntegrityError as exc:
                if self._is_email_conflict(exc):
                    raise DuplicateEmail() from exc
                raise

        return Admin(
            id=admin_id,
            email=normalized_email,
            first_name=first_name,
            last_name=last_name,
            created_at=created_at,
            updated_at=created_at,
        )

    def list_admins(self) -> List[Admin]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM admins ORDER BY created_at").fetchall()
        return [self._row_to_admin(row) for row in rows]

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    def get_account(self, kind: AccountKind, account_id: str) -> Optional[Account]:
        row = self._fetch_one(kind, "id", account_id)
        if row is None:
            return None
        return self._row_to_account(kind, row)

    def get_credentials(self, kind: AccountKind, email: str) -> Optional[Tuple[Account, Optional[str]]]:
        """Return the account registered under ``email`` together with its password hash."""

        row = self._fetch_one(kind, "email", normalize_email(email))
        if row is None:
            return None
        return self._row_to_account(kind, row), row["password_hash"]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch_one(self, kind: AccountKind, column: str, value: object) -> Optional[sqlite3.Row]:
        if column not in {"id", "email"}:
            raise ValueError(f"Unsupported lookup column: {column}")
        with self._connect() as conn:
            return conn.execute(
                f"SELECT * FROM {AccountKind(kind).value} WHERE {column} = ?",
                (value,),
            ).fetchone()

    @staticmethod
    def _is_email_conflict(exc: sqlite3.IntegrityError) -> bool:
        return "UNIQUE" in str(exc) and ".email" in str(exc)

    def _row_to_account(self, kind: AccountKind, row: sqlite3.Row) -> Account:
        if kind is AccountKind.ADMIN:
            return self._row_to_admin(row)
        return self._row_to_profile(row)

    def _row_to_profile(self, row: sqlite3.Row) -> Profile:
        return Profile(
            id=str(row["id"]),
            type=Role(row["type"]),
            profession=row["profession"],
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            email=str(row["email"]),
            balance=float(row["balance"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_admin(self, row: sqlite3.Row) -> Admin:
        return Admin(
            id=str(row["id"]),
            email=str(row["email"]),
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


def open_database(env_value: Optional[str] = None) -> Database:
    """Open and initialise the store at ``env_value`` or the default location."""

    database = Database(resolve_database_path(env_value))
    database.initialize()
    return database


__all__ = [
    "AccountKind",
    "Database",
    "FILTERABLE_PROFILE_COLUMNS",
    "UPDATABLE_PROFILE_COLUMNS",
    "normalize_email",
    "open_database",
]
