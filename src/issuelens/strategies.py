"""Acquisition strategies.

Each strategy fetches one view of an issue and returns a PartialRecord.
Strategies may raise; :class:`~issuelens.pipeline.AcquisitionPipeline`
turns any failure into an empty :class:`StrategyResult` carrying the reason.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from bs4 import BeautifulSoup

from .browser import BrowserSession, SessionFactory, extract_dom_record
from .comments import CommentsBatchParser, EventStreamParser
from .crossref import extract_change_ids
from .decoder import decode_metadata
from .logging import get_logger
from .merge import is_placeholder_title, merge_partials
from .models import PartialRecord
from .tracker_http import TrackerHttpClient
from .wire import DecodeError, parse_response

DIRECT = "direct"
PAGE_FETCH = "page-fetch"
BROWSER_AUTOMATION = "browser-automation"

JSPB_MARKER_RE = re.compile(r"defrostedResourcesJspb\s*=\s*")
PAGE_TITLE_SUFFIX_RE = re.compile(r"\s*-\s*Chromium\s*$", re.IGNORECASE)
PAGE_TITLE_REJECT = ("IssueFetchResponse", "undefined", "null")


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one strategy: partial data, or empty with a reason."""

    name: str
    record: PartialRecord = field(default_factory=PartialRecord)
    reason: str | None = None

    @property
    def usable(self) -> bool:
        return self.record.has_data()

    @classmethod
    def success(cls, name: str, record: PartialRecord) -> StrategyResult:
        return cls(name=name, record=record)

    @classmethod
    def empty(cls, name: str, reason: str) -> StrategyResult:
        return cls(name=name, reason=reason)


class AcquisitionStrategy(Protocol):
    name: str

    def acquire(self, issue_id: str) -> PartialRecord: ...


def decode_payload(data: Any, record: PartialRecord) -> PartialRecord:
    """Route a parsed response to the decoder that understands its envelope."""
    events = EventStreamParser()
    if events.matches(data):
        return events.parse(data, record)
    batch = CommentsBatchParser()
    if batch.matches(data):
        return batch.parse(data, record)
    return decode_metadata(data, into=record)


class DirectApiStrategy:
    """Summary, events and comments-batch endpoints, in that order.

    The three calls feed one record; a failing call is logged and skipped.
    Only when nothing at all came back is the first failure re-raised.
    """

    name = DIRECT

    def __init__(self, client: TrackerHttpClient, *, max_comments: int = 50) -> None:
        self.client = client
        self.max_comments = max_comments
        self.logger = get_logger()

    def _calls(self, issue_id: str) -> list[tuple[str, Callable[[], str]]]:
        return [
            ("summary", lambda: self.client.get_summary(issue_id)),
            ("events", lambda: self.client.list_events(issue_id)),
            ("comments", lambda: self.client.batch_comments(issue_id, self.max_comments)),
        ]

    def acquire(self, issue_id: str) -> PartialRecord:
        record = PartialRecord()
        errors: list[Exception] = []
        for endpoint, call in self._calls(issue_id):
            try:
                decode_payload(parse_response(call()), record)
            except Exception as exc:
                self.logger.debug(
                    "direct endpoint failed", endpoint=endpoint, issue_id=issue_id, error=str(exc)
                )
                errors.append(exc)
        if errors and not record.has_data():
            raise errors[0]
        return record


class PageFetchStrategy:
    """Plain GET of the issue page: embedded JSPB payload, else the <title>."""

    name = PAGE_FETCH

    def __init__(self, client: TrackerHttpClient) -> None:
        self.client = client

    @staticmethod
    def embedded_payload(html: str) -> Any:
        match = JSPB_MARKER_RE.search(html)
        if not match:
            return None
        try:
            value, _ = json.JSONDecoder().raw_decode(html, match.end())
        except json.JSONDecodeError as exc:
            raise DecodeError(f"embedded payload is not JSON: {exc}") from exc
        return value

    @staticmethod
    def page_title(html: str) -> str | None:
        soup = BeautifulSoup(html, "html.parser")
        if soup.title is None or not soup.title.string:
            return None
        title = PAGE_TITLE_SUFFIX_RE.sub("", soup.title.string).strip()
        if len(title) <= 5 or any(bad in title for bad in PAGE_TITLE_REJECT):
            return None
        if is_placeholder_title(title):
            return None
        return title

    def acquire(self, issue_id: str) -> PartialRecord:
        html = self.client.fetch_issue_page(issue_id)
        record = PartialRecord()
        payload = self.embedded_payload(html)
        if payload is not None:
            decode_metadata(payload, into=record)
        if record.title is None:
            record.title = self.page_title(html)
        record.related_change_ids = extract_change_ids(html)
        return record


class BrowserAutomationStrategy:
    """Render the page in a headless browser and combine DOM and network data.

    The session is held only inside the ``with`` block; network-captured
    data is merged after the DOM view so it takes precedence.
    """

    name = BROWSER_AUTOMATION

    def __init__(
        self,
        session_factory: SessionFactory,
        url_for: Callable[[str], str],
        *,
        navigation_timeout_ms: int = 30000,
        settle_delay_ms: int = 5000,
    ) -> None:
        self.session_factory = session_factory
        self.url_for = url_for
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_delay_ms = settle_delay_ms
        self.logger = get_logger()

    def _network_record(self, session: BrowserSession) -> PartialRecord:
        record = PartialRecord()
        for captured in session.captured_responses():
            try:
                decode_payload(parse_response(captured.body), record)
            except DecodeError as exc:
                self.logger.debug("captured body not decodable", url=captured.url, error=str(exc))
        return record

    def acquire(self, issue_id: str) -> PartialRecord:
        url = self.url_for(issue_id)
        with self.session_factory() as session:
            session.navigate(
                url, timeout_ms=self.navigation_timeout_ms, settle_ms=self.settle_delay_ms
            )
            dom = extract_dom_record(session)
            network = self._network_record(session)
        merged = merge_partials([dom, network])
        if network.description:
            merged.description = network.description
        return merged


__all__ = [
    "DIRECT",
    "PAGE_FETCH",
    "BROWSER_AUTOMATION",
    "StrategyResult",
    "AcquisitionStrategy",
    "decode_payload",
    "DirectApiStrategy",
    "PageFetchStrategy",
    "BrowserAutomationStrategy",
]
