"""Identity and profile management for the contractor marketplace."""

from __future__ import annotations

from typing import Any

from .database import Database, open_database


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "open_database",
    "create_app",
]
