"""Profile registration, lookup, self-service updates and login."""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Mapping, NamedTuple, Optional, Tuple

from .database import AccountKind, Database, FILTERABLE_PROFILE_COLUMNS, UPDATABLE_PROFILE_COLUMNS
from .errors import Forbidden, ImmutableField, InvalidCredentials, InvalidField, NotFound
from .models import PROFILE_TYPES, Account, Identity, LoginResult, Profile, ProfilePage, Role
from .security import PasswordHasher
from .tokens import TokenIssuer

logger = logging.getLogger("marketplace.service")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

_REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "email")


class _AccountLookup(NamedTuple):
    kind: AccountKind
    by_id: Callable[[str], Optional[Account]]


class ProfileService:
    """Business rules for marketplace profiles and administrator accounts."""

    def __init__(self, database: Database, tokens: TokenIssuer, passwords: PasswordHasher) -> None:
        self._database = database
        self._tokens = tokens
        self._passwords = passwords

    @property
    def tokens(self) -> TokenIssuer:
        return self._tokens

    # ------------------------------------------------------------------
    # Registration and lookup
    # ------------------------------------------------------------------
    def register(
        self,
        *,
        profile_type: Role | str,
        first_name: str,
        last_name: str,
        email: str,
        profession: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Tuple[Profile, str]:
        """Create a profile and return it with a freshly issued token."""

        try:
            role = Role(profile_type)
        except ValueError as exc:
            raise InvalidField(f"Unknown profile type: {profile_type}") from exc
        if role not in PROFILE_TYPES:
            raise InvalidField("Profiles must be of type client or contractor")

        if role is not Role.CONTRACTOR:
            profession = None
        elif profession is not None and not profession.strip():
            profession = None

        password_hash = self._passwords.hash(password) if password else None
        profile = self._database.create_profile(
            profile_type=role,
            first_name=first_name,
            last_name=last_name,
            email=email,
            profession=profession,
            password_hash=password_hash,
        )
        token = self._tokens.issue(profile.id, profile.type)
        logger.info("Registered %s profile %s", profile.type.value, profile.id)
        return profile, token

    def get_profile(self, profile_id: str) -> Profile:
        profile = self._database.get_profile(profile_id)
        if profile is None:
            raise NotFound()
        return profile

    def list_profiles(
        self,
        *,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        filters: Optional[Mapping[str, object]] = None,
    ) -> ProfilePage:
        """Return one page of profiles matching the supplied equality filters.

        Only filters with a non-empty value constrain the result.
        """

        if page < 1:
            raise InvalidField("page must be at least 1")
        if limit < 1:
            raise InvalidField("limit must be at least 1")

        applied: Dict[str, object] = {}
        for key, value in (filters or {}).items():
            if key not in FILTERABLE_PROFILE_COLUMNS:
                raise InvalidField(f"Unsupported filter: {key}")
            if value is None or value == "":
                continue
            applied[key] = value

        rows, total = self._database.find_and_count(applied, offset=(page - 1) * limit, limit=limit)
        return ProfilePage(
            total=total,
            total_pages=math.ceil(total / limit),
            current_page=page,
            profiles=rows,
        )

    # ------------------------------------------------------------------
    # Self-service updates
    # ------------------------------------------------------------------
    def update_profile(self, identity: Identity, profile_id: str, changes: Mapping[str, object]) -> Profile:
        """Apply a partial update on behalf of the profile owner.

        ``changes`` maps field names to new values; a key being present is what
        counts, even when its value is ``None``.
        """

        profile = self.get_profile(profile_id)

        if identity.subject_id != profile.id:
            logger.warning("Subject %s attempted to modify profile %s", identity.subject_id, profile.id)
            raise Forbidden("Unauthorized to modify this profile")

        if "type" in changes:
            raise ImmutableField("type")

        if "profession" in changes and profile.type is not Role.CONTRACTOR:
            raise InvalidField("Profession can only be updated for contractors")

        # Email is written as given; the store's unique constraint is the only
        # uniqueness check on this path.
        updates = {key: changes[key] for key in UPDATABLE_PROFILE_COLUMNS if key in changes}
        for key in _REQUIRED_PROFILE_FIELDS:
            if key in updates and updates[key] is None:
                raise InvalidField(f"{key} must not be empty")

        updated = self._database.update_profile(profile.id, updates)
        if updated is None:
            raise NotFound()
        logger.info("Profile %s updated fields: %s", profile.id, ", ".join(sorted(updates)) or "<none>")
        return updated

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(self, *, email: str, password: str, account_type: Optional[str] = None) -> LoginResult:
        """Verify credentials and issue a token.

        Unknown emails and wrong passwords fail with the same error.
        """

        is_admin = account_type == Role.ADMIN.value
        lookup = self._accounts(Role.ADMIN if is_admin else Role.CLIENT)

        found = self._database.get_credentials(lookup.kind, email)
        if found is None:
            self._passwords.dummy_verify()
            logger.warning("Rejected login attempt (%s)", lookup.kind.value)
            raise InvalidCredentials()

        account, password_hash = found
        if not self._passwords.verify(password, password_hash):
            logger.warning("Rejected login attempt (%s)", lookup.kind.value)
            raise InvalidCredentials()

        role = Role.ADMIN if is_admin else account.type  # type: ignore[union-attr]
        token = self._tokens.issue(account.id, role)
        logger.info("Account %s logged in as %s", account.id, role.value)
        return LoginResult(token=token, account=account)

    def get_logged_in(self, identity: Identity) -> Account:
        lookup = self._accounts(identity.role)
        account = lookup.by_id(identity.subject_id)
        if account is None:
            raise NotFound()
        return account

    def _accounts(self, role: Role) -> _AccountLookup:
        """Select the store backing ``role``: administrators or profiles."""

        kind = AccountKind.ADMIN if role is Role.ADMIN else AccountKind.PROFILE
        return _AccountLookup(
            kind=kind,
            by_id=lambda account_id: self._database.get_account(kind, account_id),
        )


__all__ = ["DEFAULT_LIMIT", "DEFAULT_PAGE", "ProfileService"]
