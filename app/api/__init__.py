"""API routes"""

from app.api import config, issues

__all__ = ["issues", "config"]
