"""Mirrored issue model"""
import json
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from app.models.base import Base


def utcnow() -> datetime:
    """UTC 'now' as tz-naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Issue(Base):
    """Local copy of one Jira issue.

    Core attributes are scalar columns so they can be searched and filtered in
    SQL. Everything else Jira reports lives in `extra_fields` as JSON text.
    """

    __tablename__ = "issues"

    id = Column(String, primary_key=True)
    # Nullable so a key that moved to another issue can be released.
    key = Column(String, unique=True, nullable=True, index=True)

    summary = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="", index=True)
    issue_type = Column(String, nullable=False, default="")
    priority = Column(String, nullable=False, default="")
    assignee = Column(String, nullable=False, default="")
    reporter = Column(String, nullable=False, default="")
    created = Column(String, nullable=False, default="")
    updated = Column(String, nullable=False, default="")

    # Casefolded key, summary and description; what free-text search matches.
    search_text = Column(Text, nullable=False, default="")

    # Parsed form of `updated`, used for ordering only.
    updated_at = Column(DateTime, nullable=True, index=True)

    components = Column(Text, nullable=False, default="[]")  # JSON list
    labels = Column(Text, nullable=False, default="[]")  # JSON list
    extra_fields = Column(Text, nullable=False, default="{}")  # JSON object

    last_synced = Column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        """Serialize to the camelCase shape the presentation layer consumes."""
        return {
            "id": self.id,
            "key": self.key or "",
            "summary": self.summary or "",
            "description": self.description or "",
            "status": self.status or "",
            "issueType": self.issue_type or "",
            "priority": self.priority or "",
            "assignee": self.assignee or "",
            "reporter": self.reporter or "",
            "created": self.created or "",
            "updated": self.updated or "",
            "components": json.loads(self.components or "[]"),
            "labels": json.loads(self.labels or "[]"),
            "extraFields": json.loads(self.extra_fields or "{}"),
            "lastSynced": self.last_synced.isoformat() if self.last_synced else None,
        }

    def __repr__(self):
        return f"<Issue(id='{self.id}', key='{self.key}')>"
