"""Application factory used by the ASGI server."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .api import create_app as create_api_app
from .config import Settings, load_settings
from .database import Database

logger = logging.getLogger("marketplace.application")


def create_application(
    *,
    config_path: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Load settings once and build the ASGI application."""

    app_settings = settings or load_settings(Path(config_path).expanduser() if config_path else None)

    database = Database(app_settings.database_path)
    database.initialize()
    logger.info("Credential store ready at %s", app_settings.database_path)

    return create_api_app(settings=app_settings, database=database)


__all__ = ["create_application"]
