"""Seed a demo SQLite DB with sample mirrored issues.

This is intended for docs and local demos of the query API.
It does NOT contact Jira: the issues are built as Jira search payloads and
fed through the same normalizer and store the sync uses.

Usage:
  python scripts/seed_demo_data.py --db ./data/demo-jira-mirror.db --overwrite
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


STATUSES = ["To Do", "In Progress", "In Review", "Done"]
TYPES = ["Bug", "Story", "Task"]
PRIORITIES = ["Highest", "High", "Medium", "Low"]
PEOPLE = ["Ada Lovelace", "Grace Hopper", "Alan Turing", None]
COMPONENTS = ["API", "Web", "Billing"]


def _sqlite_url_for_path(db_path: Path) -> str:
    # SQLAlchemy sqlite absolute path uses 4 slashes: sqlite:////abs/path
    p = db_path.expanduser().resolve()
    return f"sqlite:////{p}"


def _jira_timestamp(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S.000+0000")


def demo_raw_issue(n: int, now: datetime) -> dict:
    """A Jira-shaped search result entry for demo issue number n."""
    assignee = PEOPLE[n % len(PEOPLE)]
    return {
        "id": str(10000 + n),
        "key": f"DEMO-{n}",
        "self": f"https://demo.atlassian.net/rest/api/3/issue/{10000 + n}",
        "fields": {
            "summary": f"Demo issue {n}: {TYPES[n % len(TYPES)].lower()} in {COMPONENTS[n % 3]}",
            "description": {
                "type": "doc",
                "version": 1,
                "content": [
                    {
                        "type": "paragraph",
                        "content": [{"type": "text", "text": f"Generated demo issue number {n}."}],
                    }
                ],
            },
            "status": {"name": STATUSES[n % len(STATUSES)]},
            "issuetype": {"name": TYPES[n % len(TYPES)]},
            "priority": {"name": PRIORITIES[n % len(PRIORITIES)]},
            "assignee": {"displayName": assignee} if assignee else None,
            "reporter": {"displayName": PEOPLE[(n + 1) % 3]},
            "created": _jira_timestamp(now - timedelta(days=30 - n)),
            "updated": _jira_timestamp(now - timedelta(hours=n * 5)),
            "components": [{"name": COMPONENTS[n % 3]}],
            "labels": ["demo"] + (["customer"] if n % 4 == 0 else []),
            "customfield_10016": float(n % 8),  # story points
            "customfield_10020": [{"name": f"Sprint {1 + n // 6}", "state": "active"}],
        },
    }


@dataclass(frozen=True)
class SeedResult:
    db_path: Path
    issues: int


def seed_demo_db(db_path: Path, overwrite: bool = False, count: int = 24) -> SeedResult:
    db_path = db_path.expanduser().resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if overwrite and db_path.exists():
        db_path.unlink()

    # IMPORTANT: DATABASE_URL must be set before importing app.* modules
    os.environ["DATABASE_URL"] = _sqlite_url_for_path(db_path)
    os.environ.setdefault("LOG_LEVEL", "WARNING")

    from app.models.base import init_db, SessionLocal  # noqa: WPS433
    from app.schemas import FIELD_MAPPINGS_KEY, JIRA_CONFIG_KEY, SYNC_INTERVAL_KEY  # noqa: WPS433
    from app.services.field_mapping import DEFAULT_FIELD_MAPPINGS  # noqa: WPS433
    from app.services.issue_store import IssueStore  # noqa: WPS433
    from app.services.normalizer import normalize_issue  # noqa: WPS433

    init_db()

    now = datetime.now(timezone.utc).replace(microsecond=0)

    db = SessionLocal()
    try:
        store = IssueStore(db)
        for n in range(1, count + 1):
            store.upsert(normalize_issue(demo_raw_issue(n, now)))

        store.set_config_value(
            JIRA_CONFIG_KEY,
            {
                "base_url": "https://demo.atlassian.net",
                "email": "demo@example.com",
                "api_token": "demo-token-not-a-real-token",
                "project_key": "DEMO",
                "jql_query": None,
            },
        )
        mappings = [m.model_dump() for m in DEFAULT_FIELD_MAPPINGS]
        mappings.append(
            {"original_name": "customfield_10016", "display_name": "Story Points", "visible": True}
        )
        store.set_config_value(FIELD_MAPPINGS_KEY, mappings)
        store.set_config_value(SYNC_INTERVAL_KEY, 60)
    finally:
        db.close()

    return SeedResult(db_path=db_path, issues=count)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo Jira Mirror SQLite DB")
    parser.add_argument(
        "--db",
        default="./data/demo-jira-mirror.db",
        help="Path to SQLite DB file to create (default: ./data/demo-jira-mirror.db)",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Delete existing DB file first",
    )
    parser.add_argument("--count", type=int, default=24, help="Number of demo issues")
    args = parser.parse_args()

    result = seed_demo_db(Path(args.db), overwrite=bool(args.overwrite), count=args.count)
    print(f"Seeded {result.issues} demo issues at: {result.db_path}")


if __name__ == "__main__":
    main()
