from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

UNKNOWN_LABEL = "Unknown"
SCALAR_FIELDS = (
    "title",
    "status",
    "priority",
    "type",
    "severity",
    "reporter",
    "assignee",
    "created",
    "modified",
)


@dataclass(frozen=True)
class Comment:
    author: str
    timestamp: str | None
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"author": self.author, "timestamp": self.timestamp, "content": self.content}


@dataclass
class PartialRecord:
    """Whatever one acquisition strategy managed to extract.

    Every field is absent by default; enum fields only carry a label when a
    code was actually matched in the upstream payload.
    """

    title: str | None = None
    status: str | None = None
    priority: str | None = None
    type: str | None = None
    severity: str | None = None
    reporter: str | None = None
    assignee: str | None = None
    created: str | None = None
    modified: str | None = None
    description: str | None = None
    comments: list[Comment] = field(default_factory=list)
    related_change_ids: list[str] = field(default_factory=list)

    def has_data(self) -> bool:
        for f in fields(self):
            value = getattr(self, f.name)
            if value:
                return True
        return False

    def populated_fields(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def text_values(self) -> list[str]:
        """All string-valued content, in field order, for reference scanning."""
        out: list[str] = []
        for name in (*SCALAR_FIELDS, "description"):
            value = getattr(self, name)
            if isinstance(value, str) and value:
                out.append(value)
        out.extend(c.content for c in self.comments if c.content)
        return out


@dataclass(frozen=True)
class Issue:
    """Canonical record returned to callers; never mutated after creation."""

    issue_id: str
    browser_url: str
    provenance: str
    title: str | None = None
    status: str = UNKNOWN_LABEL
    priority: str = UNKNOWN_LABEL
    type: str = UNKNOWN_LABEL
    severity: str = UNKNOWN_LABEL
    reporter: str | None = None
    assignee: str | None = None
    created: str | None = None
    modified: str | None = None
    description: str | None = None
    comments: tuple[Comment, ...] = ()
    related_change_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "issueId": self.issue_id,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "severity": self.severity,
            "reporter": self.reporter,
            "assignee": self.assignee,
            "created": self.created,
            "modified": self.modified,
            "description": self.description,
            "comments": [c.to_dict() for c in self.comments],
            "relatedChangeIds": list(self.related_change_ids),
            "provenance": self.provenance,
            "browserUrl": self.browser_url,
        }


@dataclass(frozen=True)
class FetchFailure:
    """Returned instead of an Issue when no strategy produced any field."""

    issue_id: str
    browser_url: str
    error: str
    message: str = "Use the browser URL to view the issue manually."
    reasons: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issueId": self.issue_id,
            "browserUrl": self.browser_url,
            "error": self.error,
            "message": self.message,
            "reasons": dict(self.reasons),
        }


@dataclass(frozen=True)
class IssueSummary:
    """Lighter-weight record decoded from a list/search response."""

    issue_id: str
    browser_url: str
    title: str | None = None
    status: str | None = None
    priority: str | None = None
    type: str | None = None
    severity: str | None = None
    reporter: str | None = None
    assignee: str | None = None
    created: str | None = None
    modified: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "issueId": self.issue_id,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "severity": self.severity,
            "reporter": self.reporter,
            "assignee": self.assignee,
            "created": self.created,
            "modified": self.modified,
            "browserUrl": self.browser_url,
        }


@dataclass(frozen=True)
class SearchResults:
    query: str
    issues: tuple[IssueSummary, ...]
    search_url: str

    @property
    def total(self) -> int:
        return len(self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "total": self.total,
            "issues": [i.to_dict() for i in self.issues],
            "searchUrl": self.search_url,
        }


__all__ = [
    "UNKNOWN_LABEL",
    "SCALAR_FIELDS",
    "Comment",
    "PartialRecord",
    "Issue",
    "FetchFailure",
    "IssueSummary",
    "SearchResults",
]
