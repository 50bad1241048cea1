"""Error types raised by the sync and query services"""

from typing import Optional


class MirrorError(Exception):
    """Base class for service-level failures.

    `reason` is a stable machine-readable code that the API returns to clients.
    """

    reason = "error"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class NotConfigured(MirrorError):
    """No usable Jira connection settings have been saved."""

    reason = "not_configured"


class UpstreamUnavailable(MirrorError):
    """Jira could not be reached or answered with a non-success status."""

    reason = "upstream_unavailable"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        response_text: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message, reason=reason)
        self.status = status
        self.response_text = response_text


class CredentialsRejected(UpstreamUnavailable):
    """Jira answered 401/403 for the configured email and API token."""

    reason = "credentials_rejected"


class MalformedRecord(MirrorError):
    """A fetched issue could not be normalized (e.g. it has no id)."""

    reason = "malformed_record"


class NotFound(MirrorError):
    reason = "not_found"


class InvalidArgument(MirrorError):
    reason = "invalid_argument"


class SyncInProgress(MirrorError):
    """Another sync pass is already running in this process."""

    reason = "sync_in_progress"
