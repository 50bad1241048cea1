"""Key-value configuration model"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from app.models.base import Base


class ConfigEntry(Base):
    """Opaque JSON value stored under a string name"""

    __tablename__ = "config"

    name = Column(String, primary_key=True)
    value = Column(Text, nullable=True)  # JSON
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ConfigEntry(name='{self.name}')>"
