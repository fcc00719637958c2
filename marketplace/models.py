"""Domain models for marketplace accounts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union


class Role(str, Enum):
    """Roles carried by session tokens."""

    CLIENT = "client"
    CONTRACTOR = "contractor"
    ADMIN = "admin"


PROFILE_TYPES = frozenset({Role.CLIENT, Role.CONTRACTOR})


@dataclass(frozen=True)
class Identity:
    """Authenticated actor attached to a single request."""

    subject_id: str
    role: Role


@dataclass(frozen=True)
class Profile:
    """A client or contractor account. The password hash is never loaded here."""

    id: str
    type: Role
    profession: Optional[str]
    first_name: str
    last_name: str
    email: str
    balance: float
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Admin:
    """Represents an administrator stored separately from profiles."""

    id: str
    email: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime


Account = Union[Profile, Admin]


@dataclass(frozen=True)
class ProfilePage:
    total: int
    total_pages: int
    current_page: int
    profiles: List[Profile]


@dataclass(frozen=True)
class LoginResult:
    token: str
    account: Account


__all__ = [
    "Account",
    "Admin",
    "Identity",
    "LoginResult",
    "PROFILE_TYPES",
    "Profile",
    "ProfilePage",
    "Role",
]
