"""Field mapping: which issue fields to show, under which labels"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError

from app.schemas import FIELD_MAPPINGS_KEY, FieldMapping
from app.services.issue_store import IssueStore

logger = logging.getLogger(__name__)

DEFAULT_FIELD_MAPPINGS = [
    FieldMapping(original_name="summary", display_name="Summary"),
    FieldMapping(original_name="status", display_name="Status"),
    FieldMapping(original_name="issueType", display_name="Issue Type"),
    FieldMapping(original_name="priority", display_name="Priority"),
    FieldMapping(original_name="assignee", display_name="Assignee"),
    FieldMapping(original_name="reporter", display_name="Reporter"),
    FieldMapping(original_name="created", display_name="Created Date"),
    FieldMapping(original_name="updated", display_name="Updated Date"),
]

# Jira field ids whose value lives under a different attribute name locally.
_JIRA_ID_TO_ATTRIBUTE = {"issuetype": "issueType"}

# Always present in projected rows so the client can link to the issue.
_IDENTITY_FIELDS = ("id", "key")


def load_field_mappings(store: IssueStore) -> List[FieldMapping]:
    """Saved mappings, or the defaults when none (or none valid) are saved."""
    raw = store.get_config_value(FIELD_MAPPINGS_KEY)
    if not isinstance(raw, list):
        return list(DEFAULT_FIELD_MAPPINGS)

    mappings: List[FieldMapping] = []
    for entry in raw:
        try:
            mappings.append(FieldMapping.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Ignoring invalid field mapping {entry!r}: {e}")
    return mappings or list(DEFAULT_FIELD_MAPPINGS)


def resolve_field(issue: Mapping[str, Any], name: str) -> Any:
    """Value of a core attribute, else of the extra field with that id."""
    name = _JIRA_ID_TO_ATTRIBUTE.get(name, name)
    if name in issue and name != "extraFields":
        return issue[name]
    extras = issue.get("extraFields") or {}
    return extras.get(name)


def visible_columns(mappings: Iterable[FieldMapping]) -> List[Dict[str, str]]:
    return [
        {"field": m.original_name, "label": m.display_name}
        for m in mappings
        if m.visible
    ]


def project_issue(issue: Mapping[str, Any], mappings: Iterable[FieldMapping]) -> Dict[str, Any]:
    """Reduce a serialized issue to its identity plus the visible mapped fields."""
    row = {name: issue.get(name) for name in _IDENTITY_FIELDS}
    for m in mappings:
        if m.visible:
            row[m.original_name] = resolve_field(issue, m.original_name)
    return row


def suggest_field_mappings(
    jira_fields: Iterable[Mapping[str, Any]], existing: Iterable[FieldMapping]
) -> List[FieldMapping]:
    """Existing mappings followed by a hidden entry for every unmapped Jira field."""
    suggestions = list(existing)
    seen = {m.original_name for m in suggestions}
    for meta in jira_fields:
        field_id = str(meta.get("id") or "").strip()
        if not field_id:
            continue
        original_name = _JIRA_ID_TO_ATTRIBUTE.get(field_id, field_id)
        if original_name in seen:
            continue
        seen.add(original_name)
        suggestions.append(
            FieldMapping(
                original_name=original_name,
                display_name=str(meta.get("name") or field_id),
                visible=False,
            )
        )
    return suggestions
