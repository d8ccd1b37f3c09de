"""Comment extraction from the events feed and the comments-batch endpoint.

Both envelopes carry comment-like entries positionally: an author slot, a
``[seconds, nanos]`` timestamp slot and a content slot that is either a
string or an arbitrarily nested array of string fragments. They differ only
in where those slots sit and in the type tag that identifies the envelope.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .decoder import DecodeDiagnostics, decode_metadata
from .logging import get_logger
from .models import Comment, PartialRecord
from .wire import first_string, safe_get, timestamp_from_slot

EVENTS_RESPONSE_TAG = "ListIssueEventsResponse"
COMMENTS_RESPONSE_TAG = "BatchGetIssueCommentsResponse"

MIN_COMMENT_LENGTH = 20
TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 200
MIGRATION_MARKER = "[empty comment from monorail migration]"
UNKNOWN_AUTHOR = "Unknown"

TYPE_URL_PREFIX = "type.googleapis.com/"

_TAG_RE = re.compile(r"<[^>]*>")
_BREAK_RE = re.compile(r"<(?:br|/p|/div|/li|/h\d)[^>]*>", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)


def decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def clean_content(raw: str) -> str:
    """Strip tags, decode the five standard entities, collapse whitespace.

    Block-level breaks become spaces so adjacent paragraphs do not run together.
    """
    text = decode_entities(_TAG_RE.sub("", _BREAK_RE.sub(" ", raw)))
    return _WS_RE.sub(" ", text).strip()


def is_migration_artifact(content: str) -> bool:
    return MIGRATION_MARKER.strip("[]") in content.lower()


def drop_migration_artifacts(comments: Iterable[Comment]) -> list[Comment]:
    return [c for c in comments if not is_migration_artifact(c.content)]


def flatten_content(node: Any, depth: int = 0) -> str:
    """Join every string leaf of ``node`` in encounter order, space separated.

    Protobuf type URLs are structure, not prose, and are left out.
    """
    if isinstance(node, str):
        return "" if node.startswith(TYPE_URL_PREFIX) else node
    if not isinstance(node, list) or depth > 32:
        return ""
    parts = [flatten_content(item, depth + 1) for item in node]
    return " ".join(p for p in parts if p)


def _first_line(raw: str) -> str | None:
    for line in _BREAK_RE.sub("\n", raw).splitlines():
        cleaned = clean_content(line)
        if cleaned:
            return cleaned
    return None


def apply_description_fallback(record: PartialRecord, raw: str, comment: Comment) -> None:
    """Seed title/description from the first accepted comment.

    Only called for the first comment a record accepts, so later comments
    never displace it.
    """
    if record.title is None:
        line = _first_line(raw)
        if line and TITLE_MIN_LENGTH < len(line) < TITLE_MAX_LENGTH:
            record.title = line
    if record.description is None:
        record.description = comment.content


@dataclass(frozen=True)
class EntryLayout:
    author: int
    timestamp: int
    content: int
    metadata: int | None = None


class _EntryParser:
    envelope_tag: str
    layout: EntryLayout

    def __init__(self) -> None:
        self.logger = get_logger()

    # ---- envelope ---------------------------------------------------
    def entries(self, response: Any) -> list[Any]:
        """Return the payload arrays of every matching envelope in ``response``."""
        found: list[Any] = []
        if not isinstance(response, list):
            return found
        candidates = [response] if isinstance(safe_get(response, 0), str) else response
        for item in candidates:
            tag = safe_get(item, 0)
            payload = safe_get(item, 2)
            if isinstance(tag, str) and self.envelope_tag in tag and isinstance(payload, list):
                found.extend(payload)
        return found

    def matches(self, response: Any) -> bool:
        if not isinstance(response, list):
            return False
        candidates = [response] if isinstance(safe_get(response, 0), str) else response
        return any(
            isinstance(safe_get(item, 0), str) and self.envelope_tag in safe_get(item, 0)
            for item in candidates
        )

    # ---- entries ----------------------------------------------------
    def parse_entry(self, entry: Any) -> tuple[Comment, str] | None:
        """Return the cleaned comment and its raw text, or None for noise."""
        if not isinstance(entry, list):
            return None
        raw = flatten_content(safe_get(entry, self.layout.content))
        if not raw:
            return None
        content = clean_content(raw)
        if len(content) <= MIN_COMMENT_LENGTH:
            return None
        author = first_string(safe_get(entry, self.layout.author)) or UNKNOWN_AUTHOR
        timestamp = timestamp_from_slot(safe_get(entry, self.layout.timestamp))
        return Comment(author=author, timestamp=timestamp, content=content), raw

    def _accept(self, record: PartialRecord, entry: Any) -> None:
        parsed = self.parse_entry(entry)
        if parsed is None:
            return
        comment, raw = parsed
        if is_migration_artifact(comment.content):
            self.logger.debug("skipped migration artifact comment", author=comment.author)
            return
        first = not record.comments
        record.comments.append(comment)
        if first:
            apply_description_fallback(record, raw, comment)

    def parse(self, response: Any, record: PartialRecord | None = None) -> PartialRecord:
        record = record if record is not None else PartialRecord()
        for entry in self.entries(response):
            try:
                self._accept(record, entry)
            except (TypeError, ValueError, AttributeError) as exc:  # pragma: no cover
                self.logger.debug("skipping malformed entry", error=str(exc))
        return record


class EventStreamParser(_EntryParser):
    """Parses ``ListIssueEventsResponse``.

    Event entries are ``[[null, author], [seconds, nanos], content, ..., metadata]``;
    the metadata slot holds tagged field tuples describing the issue state
    after that event.
    """

    envelope_tag = EVENTS_RESPONSE_TAG
    layout = EntryLayout(author=0, timestamp=1, content=2, metadata=5)

    def parse(self, response: Any, record: PartialRecord | None = None) -> PartialRecord:
        record = record if record is not None else PartialRecord()
        diagnostics = DecodeDiagnostics()
        stamps: list[str] = []
        for entry in self.entries(response):
            if not isinstance(entry, list):
                continue
            if self.layout.metadata is not None:
                decode_metadata(
                    safe_get(entry, self.layout.metadata),
                    into=record,
                    diagnostics=diagnostics,
                )
            stamp = timestamp_from_slot(safe_get(entry, self.layout.timestamp))
            if stamp:
                stamps.append(stamp)
            self._accept(record, entry)
        if stamps:
            if record.created is None:
                record.created = min(stamps)
            record.modified = max(stamps)
        for field_name, tag, reason in diagnostics.unrecognized:
            self.logger.debug(
                "unrecognized value wrapper", field=field_name, tag=tag, reason=reason
            )
        return record


class CommentsBatchParser(_EntryParser):
    """Parses ``BatchGetIssueCommentsResponse``: entries are ``[author, null, [s, ns], content]``."""

    envelope_tag = COMMENTS_RESPONSE_TAG
    layout = EntryLayout(author=0, timestamp=2, content=3)


__all__ = [
    "EVENTS_RESPONSE_TAG",
    "COMMENTS_RESPONSE_TAG",
    "MIGRATION_MARKER",
    "clean_content",
    "decode_entities",
    "is_migration_artifact",
    "drop_migration_artifacts",
    "flatten_content",
    "apply_description_fallback",
    "EventStreamParser",
    "CommentsBatchParser",
]
