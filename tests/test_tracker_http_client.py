import json
from dataclasses import dataclass, field
from typing import Any

import pytest
import requests

from issuelens.config import LensConfig
from issuelens.errors import TrackerAPIError
from issuelens.retry import RetryConfig
from issuelens.tracker_http import TrackerHttpClient, extract_issue_id


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        payload = self.payload
        if isinstance(payload, (dict, list)):
            return ")]}'\n" + json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        data: str | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append(
            (method, url, {"headers": headers, "data": data, "params": params, "timeout": timeout})
        )
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(session: _DummySession, **kwargs: Any) -> TrackerHttpClient:
    return TrackerHttpClient(session=session, **kwargs)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("40054321", "40054321"),
        (40054321, "40054321"),
        ("https://issues.chromium.org/issues/40054321?pli=1", "40054321"),
        ("  issues.chromium.org/issues/1493929#comment3 ", "1493929"),
    ],
)
def test_extract_issue_id(value, expected):
    assert extract_issue_id(value) == expected


def test_session_headers_carry_user_agent_and_cookie():
    session = _DummySession([])
    _client(session, cookie="SID=abc", user_agent="ua/1.0")
    assert session.headers["User-Agent"] == "ua/1.0"
    assert session.headers["Cookie"] == "SID=abc"


def test_summary_is_posted_with_issue_referer():
    session = _DummySession([_DummyResponse(200, [["b.IssueSummary"]])])
    client = _client(session)

    text = client.get_summary("40054321")

    assert text.startswith(")]}'")
    method, url, meta = session.request_log[0]
    assert method == "POST"
    assert url == "https://issues.chromium.org/action/issues/40054321/getSummary"
    assert meta["headers"]["Referer"] == "https://issues.chromium.org/issues/40054321"


def test_events_request_passes_tracker_id():
    session = _DummySession([_DummyResponse(200, [])])
    _client(session, tracker_id="157").list_events("40054321")
    method, url, meta = session.request_log[0]
    assert method == "GET"
    assert url.endswith("/action/issues/40054321/events")
    assert meta["params"] == {"currentTrackerId": "157"}


def test_batch_comments_body_shape():
    session = _DummySession([_DummyResponse(200, [])])
    _client(session).batch_comments("40054321", max_comments=25)
    _, url, meta = session.request_log[0]
    assert url.endswith("/action/comments/batch")
    assert meta["headers"]["Content-Type"] == "application/json"
    assert json.loads(meta["data"]) == [
        ["b.BatchGetIssueCommentsRequest", {"issueId": 40054321, "maxComments": 25}]
    ]


def test_search_body_with_and_without_start_index():
    session = _DummySession([_DummyResponse(200, []), _DummyResponse(200, [])])
    client = _client(session)
    client.search("status:open", limit=10)
    client.search("status:open", limit=10, start_index=20)
    first = json.loads(session.request_log[0][2]["data"])
    second = json.loads(session.request_log[1][2]["data"])
    assert first == [None, None, None, None, None, ["157"], ["status:open", "modified_time desc", 10]]
    assert second[6] == ["status:open", "modified_time desc", 10, "start_index:20"]


def test_urls_follow_base_url():
    client = _client(_DummySession([]), base_url="https://tracker.example/")
    assert client.issue_url("5") == "https://tracker.example/issues/5"
    assert client.search_url("a b") == "https://tracker.example/issues?q=a%20b"


def test_error_status_raises_with_redacted_body():
    session = _DummySession([_DummyResponse(403, "denied for Cookie: SID=secret")])
    with pytest.raises(TrackerAPIError) as excinfo:
        _client(session).fetch_issue_page("40054321")
    assert excinfo.value.status == 403
    assert "secret" not in (excinfo.value.response_text or "")


def test_transient_status_is_retried(monkeypatch):
    monkeypatch.setattr(
        "issuelens.tracker_http.run_with_retries",
        _fast_retries,
    )
    session = _DummySession(
        [_DummyResponse(503, "busy"), _DummyResponse(200, [["ok"]])]
    )
    assert "ok" in _client(session).get_summary("1")
    assert len(session.request_log) == 2


def test_connection_errors_are_retried_then_raised(monkeypatch):
    monkeypatch.setattr("issuelens.tracker_http.run_with_retries", _fast_retries)
    session = _DummySession([requests.ConnectionError("reset")] * 3)
    with pytest.raises(requests.ConnectionError):
        _client(session).list_events("1")
    assert len(session.request_log) == 3


def test_from_config_uses_transport_settings():
    cfg = LensConfig(base_url="https://tracker.example", http_timeout=5.0, cookie="NID=1")
    session = _DummySession([_DummyResponse(200, [])])
    client = TrackerHttpClient.from_config(cfg, session=session)  # type: ignore[arg-type]
    client.list_events("1")
    assert session.request_log[0][2]["timeout"] == 5.0
    assert session.headers["Cookie"] == "NID=1"


def _fast_retries(fn, *, cfg=None):
    from issuelens import retry

    return retry.run_with_retries(fn, cfg=RetryConfig(attempts=3, base_sleep=0.0))
