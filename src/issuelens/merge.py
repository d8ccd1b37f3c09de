"""Combine partial records from several strategies into one Issue.

Strategies are merged in run order. Later scalar values win, except that
a later placeholder title (``"Issue 123"``, ``"Unknown"``) never replaces an
earlier real one. Descriptions go the other way: the first strategy that
has one keeps it. Comments are concatenated then stripped of migration
artifacts; change ids are the union of every reference found in any text.
"""

from __future__ import annotations

from collections.abc import Sequence

from .comments import drop_migration_artifacts
from .crossref import ChangeIdSet, extract_change_ids
from .models import SCALAR_FIELDS, UNKNOWN_LABEL, Comment, Issue, PartialRecord

PLACEHOLDER_TITLE_TOKENS = ("Issue ", "Unknown")
ENUM_FIELDS = ("status", "priority", "type", "severity")


def is_placeholder_title(title: str | None) -> bool:
    # Heuristic: a real title containing either token is also treated as a
    # placeholder. Kept as observed upstream behaviour.
    if not title:
        return True
    return any(token in title for token in PLACEHOLDER_TITLE_TOKENS)


def merge_partials(partials: Sequence[PartialRecord]) -> PartialRecord:
    """Pure merge of ``partials`` (earliest first) into a new PartialRecord."""
    merged = PartialRecord()
    comments: list[Comment] = []
    change_ids = ChangeIdSet()
    for part in partials:
        for name in SCALAR_FIELDS:
            value = getattr(part, name)
            if value is None or value == "":
                continue
            if name == "title":
                current = merged.title
                if current and not is_placeholder_title(current) and is_placeholder_title(value):
                    continue
            setattr(merged, name, value)
        if merged.description is None and part.description:
            merged.description = part.description
        comments.extend(part.comments)
        change_ids.update(part.related_change_ids)
        change_ids.update(extract_change_ids(*part.text_values()))
    merged.comments = drop_migration_artifacts(comments)
    merged.related_change_ids = list(change_ids.as_tuple())
    return merged


def to_issue(
    record: PartialRecord, *, issue_id: str, browser_url: str, provenance: str
) -> Issue:
    """Freeze a merged record; enum fields that were never seen become ``Unknown``."""
    enums = {name: getattr(record, name) or UNKNOWN_LABEL for name in ENUM_FIELDS}
    return Issue(
        issue_id=issue_id,
        browser_url=browser_url,
        provenance=provenance,
        title=record.title,
        reporter=record.reporter,
        assignee=record.assignee,
        created=record.created,
        modified=record.modified,
        description=record.description,
        comments=tuple(record.comments),
        related_change_ids=tuple(record.related_change_ids),
        **enums,
    )


__all__ = [
    "PLACEHOLDER_TITLE_TOKENS",
    "is_placeholder_title",
    "merge_partials",
    "to_issue",
]
