"""Local issue store: upserts, lookups and paginated queries"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import ConfigEntry, Issue
from app.models.issue import utcnow
from app.services.errors import InvalidArgument, NotFound
from app.services.normalizer import NormalizedIssue

logger = logging.getLogger(__name__)

# Scalar attributes that may be used as exact-match filters. Both the
# camelCase attribute name and the snake_case column name are accepted.
FILTERABLE_COLUMNS = {
    "id": Issue.id,
    "key": Issue.key,
    "summary": Issue.summary,
    "description": Issue.description,
    "status": Issue.status,
    "issueType": Issue.issue_type,
    "issue_type": Issue.issue_type,
    "priority": Issue.priority,
    "assignee": Issue.assignee,
    "reporter": Issue.reporter,
    "created": Issue.created,
    "updated": Issue.updated,
}

_TZ_NO_COLON_RE = re.compile(r"([+-]\d{2})(\d{2})$")


class IssueStore:
    """Access to the `issues` and `config` tables.

    Every write commits before returning, so a successful call means the row
    is on disk.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
        """Parse Jira timestamps (e.g. 2024-01-31T09:15:00.000+0100) into UTC tz-naive datetimes."""
        if not value:
            return None
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _TZ_NO_COLON_RE.sub(r"\1:\2", text)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt

    @staticmethod
    def _search_text(issue: NormalizedIssue) -> str:
        # SQLite's lower() only folds ASCII, so folding happens here instead.
        return "\n".join((issue.key, issue.summary, issue.description)).casefold()

    # ---- Issues -------------------------------------------------------

    def upsert(self, issue: NormalizedIssue) -> bool:
        """Insert the issue or fully replace the stored copy.

        Returns True when a new row was created.
        """
        key = issue.key or None
        try:
            row = self.db.get(Issue, issue.id)
            created = row is None
            if created:
                row = Issue(id=issue.id)
                self.db.add(row)

            if key:
                stale = (
                    self.db.query(Issue)
                    .filter(Issue.key == key, Issue.id != issue.id)
                    .first()
                )
                if stale is not None:
                    logger.warning(
                        f"Key {key} moved from issue {stale.id} to issue {issue.id}; "
                        f"clearing key on {stale.id}"
                    )
                    stale.key = None
                    self.db.flush()

            row.key = key
            row.summary = issue.summary
            row.description = issue.description
            row.status = issue.status
            row.issue_type = issue.issue_type
            row.priority = issue.priority
            row.assignee = issue.assignee
            row.reporter = issue.reporter
            row.created = issue.created
            row.updated = issue.updated
            row.search_text = self._search_text(issue)
            row.updated_at = self._parse_jira_datetime(issue.updated)
            row.components = json.dumps(list(issue.components))
            row.labels = json.dumps(list(issue.labels))
            row.extra_fields = json.dumps(issue.extra_fields, sort_keys=True, default=str)
            row.last_synced = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return created

    def get(self, id_or_key: str) -> Issue:
        """Look up an issue by id, falling back to key."""
        row = self.db.get(Issue, id_or_key)
        if row is None:
            row = self.db.query(Issue).filter(Issue.key == id_or_key).first()
        if row is None:
            raise NotFound(f"Issue {id_or_key} not found")
        return row

    def query(
        self,
        search: str = "",
        page: int = 1,
        page_size: int = 20,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[List[Issue], int]:
        """Return one page of matching issues and the total match count.

        Ordered by `updated` (newest first), then by id, so equal timestamps
        still paginate deterministically.
        """
        if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
            raise InvalidArgument(f"page_size must be a positive integer, got {page_size!r}")
        if not isinstance(page, int) or isinstance(page, bool) or page < 1:
            raise InvalidArgument(f"page must be an integer >= 1, got {page!r}")

        q = self.db.query(Issue)

        needle = (search or "").strip().casefold()
        if needle:
            q = q.filter(Issue.search_text.contains(needle, autoescape=True))

        for name, value in (filters or {}).items():
            if value is None or value == "":
                continue
            column = FILTERABLE_COLUMNS.get(name)
            if column is None:
                raise InvalidArgument(f"Cannot filter on field {name!r}")
            q = q.filter(column == str(value))

        total = q.count()
        rows = (
            q.order_by(
                Issue.updated_at.is_(None),
                Issue.updated_at.desc(),
                Issue.id.asc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    # ---- Config -------------------------------------------------------

    def get_config_value(self, name: str, default: Any = None) -> Any:
        row = self.db.get(ConfigEntry, name)
        if row is None or row.value is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError:
            return row.value

    def set_config_value(self, name: str, value: Any) -> None:
        try:
            row = self.db.get(ConfigEntry, name)
            if row is None:
                row = ConfigEntry(name=name)
                self.db.add(row)
            row.value = json.dumps(value)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
