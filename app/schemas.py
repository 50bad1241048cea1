"""Shapes of the user-editable configuration kept in the `config` table"""

from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

# Names of the entries in the `config` table.
JIRA_CONFIG_KEY = "jira"
FIELD_MAPPINGS_KEY = "field_mappings"
SYNC_INTERVAL_KEY = "sync_interval"
LAST_SYNC_TIME_KEY = "last_sync_time"


class JiraConfig(BaseModel):
    """Connection settings for the Jira site being mirrored"""

    base_url: str
    email: str
    api_token: str
    project_key: str = ""
    jql_query: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = (value or "").strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value

    @field_validator("email", "api_token")
    @classmethod
    def _check_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @model_validator(mode="after")
    def _check_scope(self):
        if not self.project_key.strip() and not (self.jql_query or "").strip():
            raise ValueError("either project_key or jql_query is required")
        return self

    def effective_jql(self) -> str:
        """The saved JQL, or every issue of the configured project."""
        jql = (self.jql_query or "").strip()
        if jql:
            return jql
        return f'project = "{self.project_key.strip()}"'

    def redacted(self) -> dict:
        data = self.model_dump()
        data["api_token"] = "********" if self.api_token else ""
        return data


class FieldMapping(BaseModel):
    """Display settings for one issue field"""

    original_name: str
    display_name: str
    visible: bool = True

    @field_validator("original_name")
    @classmethod
    def _check_original_name(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("original_name must not be empty")
        return value


class SyncIntervalUpdate(BaseModel):
    interval: int

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("interval must be at least 1 minute")
        return value
