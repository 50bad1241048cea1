"""Issue listing, lookup and sync endpoints"""
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import get_store, http_error
from app.services.errors import InvalidArgument, MirrorError, NotFound
from app.services.field_mapping import load_field_mappings, project_issue, visible_columns
from app.services.issue_store import IssueStore
from app.services.sync_service import SyncService

router = APIRouter(prefix="/api/issues", tags=["issues"])

# Query parameters that are not field filters.
_RESERVED_PARAMS = {"search", "page", "limit"}


def _filters_from(request: Request) -> Dict[str, str]:
    return {
        name: value
        for name, value in request.query_params.items()
        if name not in _RESERVED_PARAMS
    }


@router.get("")
def list_issues(
    request: Request,
    search: str = "",
    page: int = 1,
    limit: int = 20,
    store: IssueStore = Depends(get_store),
):
    """List issues with search, field filters and pagination"""
    try:
        issues, total = store.query(search, page, limit, _filters_from(request))
    except InvalidArgument as e:
        raise http_error(e)
    return {
        "issues": [issue.to_dict() for issue in issues],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/view")
def list_issue_view(
    request: Request,
    search: str = "",
    page: int = 1,
    limit: int = 20,
    store: IssueStore = Depends(get_store),
):
    """Same as list_issues, reduced to the configured visible fields"""
    try:
        issues, total = store.query(search, page, limit, _filters_from(request))
    except InvalidArgument as e:
        raise http_error(e)
    mappings = load_field_mappings(store)
    return {
        "columns": visible_columns(mappings),
        "rows": [project_issue(issue.to_dict(), mappings) for issue in issues],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.post("/sync")
def trigger_sync(store: IssueStore = Depends(get_store)):
    """Manually trigger a full sync from Jira"""
    try:
        result = SyncService(store).run_sync()
    except MirrorError as e:
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@router.get("/{id_or_key}")
def get_issue(id_or_key: str, store: IssueStore = Depends(get_store)):
    """Get an issue by id or key"""
    try:
        issue = store.get(id_or_key)
    except NotFound as e:
        raise http_error(e)
    return issue.to_dict()
