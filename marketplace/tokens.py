"""Signed bearer tokens for authenticated sessions."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from .config import DEFAULT_TOKEN_TTL
from .errors import Unauthenticated
from .models import Identity, Role

_JWT_ALG = "HS256"


class TokenIssuer:
    """Sign and verify ``{subject, role}`` claim sets with a fixed expiry."""

    def __init__(self, secret: str, *, ttl: timedelta = DEFAULT_TOKEN_TTL) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._secret = secret
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def issue(self, subject: str, role: Role) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(subject),
            "role": Role(role).value,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_JWT_ALG)

    def verify(self, token: str) -> Identity:
        """Decode ``token`` into an :class:`Identity`.

        Expired, tampered and malformed tokens all raise the same
        :class:`Unauthenticated` error.
        """

        if not token:
            raise Unauthenticated()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_JWT_ALG],
                options={"require": ["sub", "role", "exp"]},
            )
        except jwt.InvalidTokenError as exc:
            raise Unauthenticated() from exc

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthenticated()
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise Unauthenticated() from exc
        return Identity(subject_id=subject, role=role)


__all__ = ["TokenIssuer"]
