"""Error taxonomy shared by the profile service and its HTTP layer."""

from __future__ import annotations


class ServiceError(RuntimeError):
    """Base class for failures surfaced to callers with a stable kind."""

    kind = "internal"
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class Unauthenticated(ServiceError):
    """Raised when a request carries no usable bearer token."""

    kind = "unauthenticated"
    default_message = "Not authenticated"


class Forbidden(ServiceError):
    kind = "forbidden"
    default_message = "Not permitted"


class NotFound(ServiceError):
    kind = "not_found"
    default_message = "Profile not found"


class DuplicateEmail(ServiceError):
    kind = "duplicate_email"
    default_message = "Email already in use"


class ImmutableField(ServiceError):
    """Raised when an update touches a write-once field."""

    kind = "immutable_field"

    def __init__(self, field: str) -> None:
        super().__init__(f"Modification of {field} is not allowed")
        self.field = field


class InvalidField(ServiceError):
    kind = "invalid_field"
    default_message = "Invalid field"


class InvalidCredentials(ServiceError):
    """Raised for both unknown accounts and wrong passwords."""

    kind = "invalid_credentials"
    default_message = "Invalid email or password"


class StoreError(ServiceError):
    """Raised when the credential store fails unexpectedly."""

    kind = "internal"
    default_message = "Credential store operation failed"


__all__ = [
    "DuplicateEmail",
    "Forbidden",
    "ImmutableField",
    "InvalidCredentials",
    "InvalidField",
    "NotFound",
    "ServiceError",
    "StoreError",
    "Unauthenticated",
]
