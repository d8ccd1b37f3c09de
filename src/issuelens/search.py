"""Decoder for the tracker's list/search response.

Issue rows look like ``[null, issueId, nested, createdSeconds, [modifiedSeconds],
null, null, null, statusCode, [priorityCode], ...]`` with ``nested`` holding
``[?, status, priority, type, severity, title, [null, reporterEmail], [null, assigneeEmail]]``.
Rows are recognised among the container's items and their direct children:
more than five elements, and a second element above 1,000,000. Real issue
ids are large; structural indices are not.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from . import code_tables
from .logging import get_logger
from .models import IssueSummary, SearchResults
from .wire import iso_instant, safe_get

ISSUE_ID_FLOOR = 1_000_000
MIN_ROW_LENGTH = 5

# Offsets inside the nested sub-array at row[2].
NESTED_SLOT = 2
NESTED_OFFSETS = {"status": 1, "priority": 2, "type": 3, "severity": 4}
TITLE_OFFSET = 5
REPORTER_OFFSET = 6
ASSIGNEE_OFFSET = 7
USER_EMAIL_SLOT = 1

# Offsets on the row itself.
CREATED_OFFSET = 3
MODIFIED_OFFSET = 4
FALLBACK_STATUS_OFFSET = 8
FALLBACK_PRIORITY_OFFSET = 9


def is_issue_candidate(node: Any) -> bool:
    if not isinstance(node, list) or len(node) <= MIN_ROW_LENGTH:
        return False
    ident = node[1]
    if isinstance(ident, bool) or not isinstance(ident, (int, float)):
        return False
    return ident > ISSUE_ID_FLOOR


def iter_candidates(container: Any) -> Iterator[list[Any]]:
    """Yield issue rows among the container's items and their direct children.

    Deeper arrays are never inspected, so nested ``[seconds, nanos]`` pairs
    and similar structure cannot pass for rows.
    """
    if not isinstance(container, list):
        return
    for item in container:
        if not isinstance(item, list):
            continue
        if is_issue_candidate(item):
            yield item
            continue
        for child in item:
            if is_issue_candidate(child):
                yield child


def _user(slot: Any) -> str | None:
    email = safe_get(slot, USER_EMAIL_SLOT)
    return email if isinstance(email, str) and email else None


def _label(field: str, value: Any) -> str | None:
    code = code_tables.as_code(value)
    if code is None:
        return None
    return code_tables.TABLES[field].label(code)


def decode_row(row: list[Any], url_for: Callable[[str], str]) -> IssueSummary:
    issue_id = str(int(row[1]))
    nested = safe_get(row, NESTED_SLOT)
    values: dict[str, Any] = {}
    if isinstance(nested, list):
        for field, offset in NESTED_OFFSETS.items():
            label = _label(field, safe_get(nested, offset))
            if label is not None:
                values[field] = label
        title = safe_get(nested, TITLE_OFFSET)
        if isinstance(title, str) and title.strip():
            values["title"] = title.strip()
        values["reporter"] = _user(safe_get(nested, REPORTER_OFFSET))
        values["assignee"] = _user(safe_get(nested, ASSIGNEE_OFFSET))
    if "status" not in values:
        label = _label("status", safe_get(row, FALLBACK_STATUS_OFFSET))
        if label is not None:
            values["status"] = label
    if "priority" not in values:
        label = _label("priority", safe_get(row, FALLBACK_PRIORITY_OFFSET, 0))
        if label is not None:
            values["priority"] = label
    created = safe_get(row, CREATED_OFFSET)
    if isinstance(created, list):
        created = safe_get(created, 0)
    values["created"] = iso_instant(created)
    values["modified"] = iso_instant(safe_get(row, MODIFIED_OFFSET, 0))
    return IssueSummary(issue_id=issue_id, browser_url=url_for(issue_id), **values)


def decode_search_response(
    response: Any, *, query: str, url_for: Callable[[str], str], search_url: str
) -> SearchResults:
    """Decode every issue row in ``response``; duplicates by id are dropped."""
    container = safe_get(response, 0, 6)
    root = container if isinstance(container, list) else response
    seen: set[str] = set()
    issues: list[IssueSummary] = []
    for row in iter_candidates(root):
        try:
            summary = decode_row(row, url_for)
        except (TypeError, ValueError, OverflowError) as exc:
            get_logger().debug("skipping undecodable search row", error=str(exc))
            continue
        if summary.issue_id in seen:
            continue
        seen.add(summary.issue_id)
        issues.append(summary)
    return SearchResults(query=query, issues=tuple(issues), search_url=search_url)


__all__ = [
    "ISSUE_ID_FLOOR",
    "MIN_ROW_LENGTH",
    "is_issue_candidate",
    "iter_candidates",
    "decode_row",
    "decode_search_response",
]
