"""Shared route dependencies and error translation"""
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.models.base import get_db
from app.services.errors import (
    CredentialsRejected,
    InvalidArgument,
    MirrorError,
    NotConfigured,
    NotFound,
    SyncInProgress,
    UpstreamUnavailable,
)
from app.services.issue_store import IssueStore

# Checked in order, so subclasses must come before their parents.
_STATUS_BY_ERROR = (
    (NotFound, 404),
    (InvalidArgument, 400),
    (NotConfigured, 409),
    (SyncInProgress, 409),
    (CredentialsRejected, 502),
    (UpstreamUnavailable, 502),
)


def get_store(db: Session = Depends(get_db)) -> IssueStore:
    return IssueStore(db)


def http_error(exc: MirrorError) -> HTTPException:
    """Translate a service error into an HTTPException with a reason code."""
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"reason": exc.reason, "message": str(exc)},
    )
