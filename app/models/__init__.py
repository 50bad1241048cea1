"""Database models"""

from app.models.base import Base
from app.models.config_entry import ConfigEntry
from app.models.issue import Issue

__all__ = [
    "Base",
    "Issue",
    "ConfigEntry",
]
