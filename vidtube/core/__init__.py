"""Core app configuration, database, security and errors."""

from vidtube.core.config import get_settings, settings
from vidtube.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
