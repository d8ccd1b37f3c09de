from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from issuelens import FetchFailure, Issue, IssueLens, LensConfig
from issuelens.browser import CapturedResponse

REAL = "Reproduces on Canary 121 with the attached test page."


@dataclass
class _DummyResponse:
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)


class _RoutingSession:
    """Answers by URL substring; unmatched URLs get a 404."""

    def __init__(self, routes: dict[str, Any]):
        self.routes = routes
        self.headers: dict[str, str] = {}
        self.urls: list[str] = []
        self._lock = threading.Lock()

    def request(self, method: str, url: str, **kwargs: Any) -> _DummyResponse:
        with self._lock:
            self.urls.append(url)
        for fragment, payload in self.routes.items():
            if fragment in url:
                return _DummyResponse(200, ")]}'\n" + json.dumps(payload))
        return _DummyResponse(404, "not found")


class _DomOnlySession:
    def __init__(self, title: str):
        self.title = title

    def navigate(self, url: str, *, timeout_ms: int, settle_ms: int) -> bool:
        return True

    def text_of(self, selector: str) -> str | None:
        return self.title if selector == "h1" else None

    def page_text(self) -> str:
        return "Priority P2\nType: Task"

    def document_title(self) -> str:
        return ""

    def captured_responses(self) -> list[CapturedResponse]:
        return []


def _browser(lifecycle: list[str], title: str = "Renderer crash on navigate"):
    @contextmanager
    def _factory() -> Iterator[_DomOnlySession]:
        lifecycle.append("acquired")
        try:
            yield _DomOnlySession(title)
        finally:
            lifecycle.append("released")

    return _factory


def _lens(session: _RoutingSession, lifecycle: list[str], **cfg: Any) -> IssueLens:
    return IssueLens(
        LensConfig(settle_delay_ms=0, **cfg),
        http_session=session,  # type: ignore[arg-type]
        browser_factory=_browser(lifecycle),
    )


def _direct_routes(issue_id: str, payloads) -> dict[str, Any]:
    return {
        f"/issues/{issue_id}/getSummary": [
            [payloads.title(f"Crash number {issue_id} in renderer"), payloads.status(2)]
        ],
        f"/issues/{issue_id}/events": payloads.events_response(
            payloads.event("a@chromium.org", 1700000000, REAL)
        ),
    }


def test_get_issue_direct_path(payloads):
    lifecycle: list[str] = []
    session = _RoutingSession(_direct_routes("40054321", payloads))

    result = _lens(session, lifecycle).get_issue("https://issues.chromium.org/issues/40054321")

    assert isinstance(result, Issue)
    assert result.provenance == "direct"
    assert result.title == "Crash number 40054321 in renderer"
    assert result.status == "ASSIGNED"
    assert result.created == "2023-11-14T22:13:20.000Z"
    assert [c.content for c in result.comments] == [REAL]
    assert lifecycle == []


def test_get_issue_falls_back_to_browser():
    lifecycle: list[str] = []
    session = _RoutingSession({})

    result = _lens(session, lifecycle).get_issue("40054321")

    assert isinstance(result, Issue)
    assert result.provenance == "browser-automation"
    assert result.title == "Renderer crash on navigate"
    assert result.priority == "P2"
    assert result.type == "Task"
    assert lifecycle == ["acquired", "released"]


def test_get_issue_without_browser_reports_failure():
    lifecycle: list[str] = []
    lens = _lens(_RoutingSession({}), lifecycle, browser_enabled=False)

    result = lens.get_issue("40054321")

    assert isinstance(result, FetchFailure)
    assert result.browser_url == "https://issues.chromium.org/issues/40054321"
    assert set(result.reasons) == {"direct", "page-fetch"}
    assert lifecycle == []


def test_get_issue_twice_gives_identical_records(payloads):
    session = _RoutingSession(_direct_routes("40054321", payloads))
    lens = _lens(session, [])

    first = lens.get_issue("40054321")
    second = lens.get_issue("40054321")

    assert isinstance(first, Issue) and isinstance(second, Issue)
    assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(
        second.to_dict(), sort_keys=True
    )


def test_get_issues_keeps_input_order(payloads):
    routes = {**_direct_routes("1111111", payloads), **_direct_routes("2222222", payloads)}
    lens = _lens(_RoutingSession(routes), [], browser_enabled=False, concurrency_max_workers=2)

    results = lens.get_issues(["2222222", "1111111", "3333333"])

    assert [r.issue_id for r in results] == ["2222222", "1111111", "3333333"]
    assert isinstance(results[0], Issue) and isinstance(results[1], Issue)
    assert isinstance(results[2], FetchFailure)


def test_get_issues_async(payloads):
    lens = _lens(_RoutingSession(_direct_routes("1111111", payloads)), [], browser_enabled=False)
    results = asyncio.run(lens.get_issues_async(["1111111"]))
    assert isinstance(results[0], Issue)


def test_search_issues():
    nested = [None, 1, 2, 1, 3, "Crash in compositor", [None, "r@x.org"]]
    row = [None, 1493929, nested, 1700000000, [1700000500], None, None, None]
    session = _RoutingSession({"/action/issues/list": [[None, None, None, None, None, None, [row]]]})
    lens = _lens(session, [])

    results = lens.search_issues("component:Blink", limit=5)

    assert results.total == 1
    assert results.issues[0].title == "Crash in compositor"
    assert results.issues[0].priority == "P2"
    assert results.search_url == "https://issues.chromium.org/issues?q=component%3ABlink"
    assert session.urls == ["https://issues.chromium.org/action/issues/list"]


def test_from_config_path(tmp_path):
    path = tmp_path / "issuelens.config.yaml"
    path.write_text("tracker:\n  tracker_id: 99\nenvironment:\n  load_dotenv: false\n")
    lens = IssueLens.from_config_path(path)
    assert lens.cfg.tracker_id == "99"
    assert lens.client.tracker_id == "99"
