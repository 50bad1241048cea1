"""Services"""

from app.services.issue_store import IssueStore
from app.services.jira_client import JiraClient
from app.services.sync_service import SyncService

__all__ = ["IssueStore", "JiraClient", "SyncService"]
