"""Security helpers: password hashing, bearer authentication and role gates."""
from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import DEFAULT_COOKIE_NAME
from .errors import Forbidden, Unauthenticated
from .models import Identity, Role
from .tokens import TokenIssuer


class PasswordHasher:
    """One-way password hashing with constant-time verification."""

    def __init__(self, context: CryptContext | None = None) -> None:
        self._context = context or CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        """Check ``password`` against ``hashed``.

        Missing or unreadable hashes cost the same work as a real comparison.
        """

        if not hashed:
            self.dummy_verify()
            return False
        try:
            return self._context.verify(password or "", hashed)
        except (ValueError, TypeError):
            self.dummy_verify()
            return False

    def dummy_verify(self) -> None:
        """Spend the same effort as a real check when no account matched."""

        self._context.dummy_verify()


class TokenAuthenticator:
    """Resolve the bearer token of a request into an :class:`Identity`.

    The ``Authorization: Bearer`` header wins over the session cookie.
    """

    def __init__(self, tokens: TokenIssuer, *, cookie_name: str = DEFAULT_COOKIE_NAME) -> None:
        self._tokens = tokens
        self._cookie_name = cookie_name
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Identity:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        token: str | None = None
        if credentials is not None and credentials.scheme.lower() == "bearer":
            token = credentials.credentials
        if not token:
            token = request.cookies.get(self._cookie_name)
        if not token:
            raise Unauthenticated()
        return self._tokens.verify(token)


def require_role(identity: Identity | None, role: Role) -> Identity:
    """Return ``identity`` if it carries ``role``, otherwise raise :class:`Forbidden`."""

    if identity is None or identity.role != role:
        raise Forbidden(f"{Role(role).value.capitalize()} role required")
    return identity


class RoleGate:
    """Dependency that authenticates a request and requires a single role."""

    def __init__(self, role: Role, authenticator: TokenAuthenticator) -> None:
        self.role = Role(role)
        self._authenticator = authenticator

    async def __call__(self, request: Request) -> Identity:
        identity = await self._authenticator(request)
        return require_role(identity, self.role)


def require_admin(authenticator: TokenAuthenticator) -> RoleGate:
    return RoleGate(Role.ADMIN, authenticator)


def require_contractor(authenticator: TokenAuthenticator) -> RoleGate:
    return RoleGate(Role.CONTRACTOR, authenticator)


__all__ = [
    "PasswordHasher",
    "RoleGate",
    "TokenAuthenticator",
    "require_admin",
    "require_contractor",
    "require_role",
]
