"""Conversion of raw Jira issue payloads into the local issue shape.

Jira returns a fixed envelope (`id`, `key`, `fields`) but the content of
`fields` depends on the site: every custom field shows up as its own
`customfield_NNNNN` entry. The core attributes are pulled out of a handful of
known paths and everything else is kept as-is in `extra_fields`, so nothing
Jira reports is lost even though the local schema is fixed.

Everything in this module is pure; it never talks to Jira or the database.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from app.services.errors import MalformedRecord

# Jira field ids read into core attributes.
CORE_FIELD_IDS = frozenset(
    {
        "summary",
        "description",
        "status",
        "issuetype",
        "priority",
        "assignee",
        "reporter",
        "created",
        "updated",
        "components",
        "labels",
    }
)

# Attribute names of the local issue shape; extra fields may never use these.
CANONICAL_ATTRIBUTES = frozenset(
    {
        "id",
        "key",
        "summary",
        "description",
        "status",
        "issueType",
        "priority",
        "assignee",
        "reporter",
        "created",
        "updated",
        "components",
        "labels",
        "extraFields",
        "lastSynced",
    }
)

_EXCLUDED_FROM_EXTRA = CORE_FIELD_IDS | CANONICAL_ATTRIBUTES


@dataclass
class NormalizedIssue:
    id: str
    key: str = ""
    summary: str = ""
    description: str = ""
    status: str = ""
    issue_type: str = ""
    priority: str = ""
    assignee: str = ""
    reporter: str = ""
    created: str = ""
    updated: str = ""
    components: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    extra_fields: Dict[str, Any] = field(default_factory=dict)


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _named(value: Any, *attrs: str) -> str:
    """Read a display name from a Jira object such as `status` or `assignee`."""
    if value is None:
        return ""
    if isinstance(value, Mapping):
        for attr in attrs:
            found = value.get(attr)
            if found not in (None, ""):
                return _scalar(found)
        return ""
    return _scalar(value)


def _first_text(node: Any) -> Optional[str]:
    """Depth-first search for the first text node of an ADF document."""
    if isinstance(node, Mapping):
        if node.get("type") == "text" and isinstance(node.get("text"), str):
            return node["text"]
        node = node.get("content")
    if isinstance(node, list):
        for child in node:
            text = _first_text(child)
            if text:
                return text
    return None


def flatten_description(value: Any) -> str:
    """Plain-text rendering of a description.

    Descriptions arrive as plain strings (API v2, wiki markup) or as an
    Atlassian Document Format tree (API v3). Only the first text node of an
    ADF tree is kept; formatting is dropped.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return _first_text(value) or ""


def _string_list(values: Any, *attrs: str) -> List[str]:
    if not isinstance(values, list):
        return []
    out: List[str] = []
    for item in values:
        if item is None:
            continue
        name = _named(item, *attrs) if attrs else _scalar(item)
        if name:
            out.append(name)
    return out


def normalize_issue(raw: Any) -> NormalizedIssue:
    """Build a NormalizedIssue from one entry of a Jira search response.

    Raises MalformedRecord when the payload is not an object or has no id.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"expected an issue object, got {type(raw).__name__}")

    issue_id = _scalar(raw.get("id")).strip()
    if not issue_id:
        key = _scalar(raw.get("key")) or "<no key>"
        raise MalformedRecord(f"issue {key} has no id")

    fields = raw.get("fields")
    if not isinstance(fields, Mapping):
        fields = {}

    extra_fields = {
        name: value for name, value in fields.items() if name not in _EXCLUDED_FROM_EXTRA
    }

    return NormalizedIssue(
        id=issue_id,
        key=_scalar(raw.get("key")).strip(),
        summary=_scalar(fields.get("summary")),
        description=flatten_description(fields.get("description")),
        status=_named(fields.get("status"), "name"),
        issue_type=_named(fields.get("issuetype"), "name"),
        priority=_named(fields.get("priority"), "name"),
        assignee=_named(fields.get("assignee"), "displayName", "name"),
        reporter=_named(fields.get("reporter"), "displayName", "name"),
        created=_scalar(fields.get("created")),
        updated=_scalar(fields.get("updated")),
        components=_string_list(fields.get("components"), "name"),
        labels=_string_list(fields.get("labels")),
        extra_fields=extra_fields,
    )
