"""Issue synchronization service"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from pydantic import ValidationError

from app.schemas import JIRA_CONFIG_KEY, LAST_SYNC_TIME_KEY, JiraConfig
from app.services.errors import MalformedRecord, NotConfigured, SyncInProgress
from app.services.issue_store import IssueStore
from app.services.jira_client import JiraClient
from app.services.normalizer import normalize_issue

logger = logging.getLogger(__name__)


class SyncRunGuard:
    """Allows at most one sync pass at a time within the process."""

    def __init__(self):
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SyncInProgress("A sync is already running")
        try:
            yield
        finally:
            self._lock.release()

    def is_running(self) -> bool:
        return self._lock.locked()


# Shared by the scheduler job and the manual trigger endpoint.
sync_guard = SyncRunGuard()


@dataclass
class SyncResult:
    """Counts for one sync pass"""

    total: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_jira_config(store: IssueStore) -> JiraConfig:
    """Read and validate the saved Jira connection settings."""
    raw = store.get_config_value(JIRA_CONFIG_KEY)
    if not isinstance(raw, dict) or not raw:
        raise NotConfigured("Jira connection settings have not been saved")
    try:
        return JiraConfig.model_validate(raw)
    except ValidationError as e:
        raise NotConfigured(f"Jira connection settings are incomplete: {e}") from e


class SyncService:
    """Runs full fetch-normalize-upsert passes against the configured Jira site"""

    def __init__(
        self,
        store: IssueStore,
        client: Optional[JiraClient] = None,
        guard: Optional[SyncRunGuard] = None,
    ):
        self.store = store
        self.client = client
        self.guard = guard or sync_guard

    @staticmethod
    def _utcnow() -> datetime:
        return datetime.now(timezone.utc)

    def _client_for(self, config: JiraConfig) -> JiraClient:
        if self.client is not None:
            return self.client
        return JiraClient.from_config(config)

    def run_sync(self) -> SyncResult:
        """Fetch every issue matching the configured query and upsert it locally.

        A fetch failure aborts the pass; issues stored before the failure stay
        stored. Issues that cannot be normalized are skipped and counted.
        """
        with self.guard.hold():
            config = load_jira_config(self.store)
            client = self._client_for(config)
            jql = config.effective_jql()

            logger.info(f"Starting Jira sync: {jql}")
            started = time.monotonic()
            result = SyncResult()

            for batch in client.iter_issue_batches(jql):
                for raw in batch:
                    try:
                        issue = normalize_issue(raw)
                    except MalformedRecord as e:
                        result.skipped += 1
                        logger.warning(f"Skipping issue that could not be normalized: {e}")
                        continue

                    if self.store.upsert(issue):
                        result.added += 1
                    else:
                        result.updated += 1
                    result.total += 1

            self.store.set_config_value(
                LAST_SYNC_TIME_KEY, self._utcnow().isoformat().replace("+00:00", "Z")
            )
            result.duration_seconds = round(time.monotonic() - started, 3)
            logger.info(
                f"Jira sync finished: total={result.total} added={result.added} "
                f"updated={result.updated} skipped={result.skipped} "
                f"in {result.duration_seconds}s"
            )
            return result
