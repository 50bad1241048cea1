"""Configuration endpoints: Jira connection, field mappings, sync interval"""
from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_store, http_error
from app.config import settings
from app.schemas import (
    FIELD_MAPPINGS_KEY,
    JIRA_CONFIG_KEY,
    LAST_SYNC_TIME_KEY,
    SYNC_INTERVAL_KEY,
    FieldMapping,
    JiraConfig,
    SyncIntervalUpdate,
)
from app.scheduler import scheduler
from app.services.errors import MirrorError, NotConfigured
from app.services.field_mapping import load_field_mappings, suggest_field_mappings
from app.services.issue_store import IssueStore
from app.services.jira_client import JiraClient
from app.services.sync_service import load_jira_config

router = APIRouter(prefix="/api/config", tags=["config"])

REDACTED_TOKEN = "********"


@router.get("")
def get_config(store: IssueStore = Depends(get_store)):
    """Get the application configuration (API token redacted)"""
    try:
        jira = load_jira_config(store).redacted()
    except NotConfigured:
        jira = None
    return {
        "jira": jira,
        "field_mappings": [m.model_dump() for m in load_field_mappings(store)],
        "sync_interval": store.get_config_value(
            SYNC_INTERVAL_KEY, settings.default_sync_interval_minutes
        ),
        "last_sync_time": store.get_config_value(LAST_SYNC_TIME_KEY),
    }


@router.put("/jira")
def update_jira_config(config: JiraConfig, store: IssueStore = Depends(get_store)):
    """Save Jira connection settings"""
    data = config.model_dump()
    if config.api_token == REDACTED_TOKEN:
        # The client echoed back the redacted value from GET /api/config.
        try:
            data["api_token"] = load_jira_config(store).api_token
        except NotConfigured as e:
            raise http_error(e)
    store.set_config_value(JIRA_CONFIG_KEY, data)
    return {"success": True}


@router.put("/field-mappings")
def update_field_mappings(mappings: List[FieldMapping], store: IssueStore = Depends(get_store)):
    """Replace the field mappings"""
    store.set_config_value(FIELD_MAPPINGS_KEY, [m.model_dump() for m in mappings])
    return {"success": True}


@router.put("/sync-interval")
def update_sync_interval(body: SyncIntervalUpdate, store: IssueStore = Depends(get_store)):
    """Save the sync interval (minutes) and reschedule the periodic sync"""
    store.set_config_value(SYNC_INTERVAL_KEY, body.interval)
    if scheduler.running:
        scheduler.schedule(body.interval)
    return {"success": True}


@router.get("/jira-fields")
def get_jira_fields(store: IssueStore = Depends(get_store)):
    """Field metadata from Jira"""
    try:
        return JiraClient.from_config(load_jira_config(store)).get_fields()
    except MirrorError as e:
        raise http_error(e)


@router.get("/field-mappings/suggested")
def get_suggested_field_mappings(store: IssueStore = Depends(get_store)):
    """Current mappings plus a hidden entry for every other Jira field"""
    try:
        fields = JiraClient.from_config(load_jira_config(store)).get_fields()
    except MirrorError as e:
        raise http_error(e)
    existing = load_field_mappings(store)
    return [m.model_dump() for m in suggest_field_mappings(fields, existing)]


@router.post("/test-connection")
def test_connection(store: IssueStore = Depends(get_store)):
    """Check the saved Jira settings against Jira"""
    try:
        config = load_jira_config(store)
    except NotConfigured as e:
        raise http_error(e)
    return {"success": JiraClient.from_config(config).test_connection()}
