"""Core app configuration, database and error taxonomy."""

from creds.core.config import get_settings, settings
from creds.core.database import get_db, get_session_factory

__all__ = ["get_settings", "settings", "get_db", "get_session_factory"]
