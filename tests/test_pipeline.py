from __future__ import annotations

import json
from collections.abc import Callable

import requests

from issuelens.errors import TrackerAPIError
from issuelens.models import Comment, FetchFailure, Issue, PartialRecord
from issuelens.pipeline import AcquisitionPipeline, is_sufficient

REAL = "Reproduces on Canary 121 with the attached test page."


def url_for(issue_id: str) -> str:
    return f"https://issues.chromium.org/issues/{issue_id}"


class _Strategy:
    def __init__(
        self,
        name: str,
        build: Callable[[], PartialRecord] | None = None,
        error: Exception | None = None,
    ):
        self.name = name
        self.build = build or PartialRecord
        self.error = error
        self.calls: list[str] = []

    def acquire(self, issue_id: str) -> PartialRecord:
        self.calls.append(issue_id)
        if self.error is not None:
            raise self.error
        return self.build()


def _pipeline(direct, page, browser) -> AcquisitionPipeline:
    return AcquisitionPipeline(direct, [page, browser], url_for)


def test_sufficiency_rule():
    assert is_sufficient(PartialRecord(comments=[Comment("a", None, REAL)]))
    assert is_sufficient(PartialRecord(description="x" * 21))
    assert not is_sufficient(PartialRecord(description="x" * 20))
    assert not is_sufficient(PartialRecord(title="Renderer crash on navigate"))


def test_sufficient_direct_short_circuits():
    direct = _Strategy(
        "direct",
        lambda: PartialRecord(title="Renderer crash on navigate", description=REAL),
    )
    page = _Strategy("page-fetch")
    browser = _Strategy("browser-automation")

    result = _pipeline(direct, page, browser).run("40054321")

    assert isinstance(result, Issue)
    assert result.provenance == "direct"
    assert result.description == REAL
    assert page.calls == [] and browser.calls == []


def test_direct_failure_falls_through_to_browser():
    direct = _Strategy("direct", error=requests.ConnectionError("connection reset"))
    page = _Strategy("page-fetch", error=TrackerAPIError("forbidden", status=403))
    browser = _Strategy(
        "browser-automation",
        lambda: PartialRecord(title="Renderer crash on navigate", status="NEW"),
    )

    result = _pipeline(direct, page, browser).run("https://issues.chromium.org/issues/40054321")

    assert isinstance(result, Issue)
    assert result.provenance == "browser-automation"
    assert result.issue_id == "40054321"
    assert result.title == "Renderer crash on navigate"
    assert result.status == "NEW"
    assert result.priority == "Unknown"
    assert browser.calls == ["40054321"]


def test_browser_runs_even_when_page_fetch_has_data():
    direct = _Strategy("direct", lambda: PartialRecord(title="Issue 40054321"))
    page = _Strategy(
        "page-fetch",
        lambda: PartialRecord(title="Renderer crash on navigate", related_change_ids=["6624568"]),
    )
    browser = _Strategy(
        "browser-automation",
        lambda: PartialRecord(title="Issue 40054321", priority="P1", description="CL 1234567 landed"),
    )

    result = _pipeline(direct, page, browser).run("40054321")

    assert isinstance(result, Issue)
    assert browser.calls == ["40054321"]
    assert result.title == "Renderer crash on navigate"
    assert result.priority == "P1"
    assert result.provenance == "browser-automation"
    assert result.related_change_ids == ("6624568", "1234567")


def test_provenance_is_last_strategy_with_data():
    direct = _Strategy("direct", error=TrackerAPIError("down", status=503))
    page = _Strategy("page-fetch", lambda: PartialRecord(title="Renderer crash on navigate"))
    browser = _Strategy("browser-automation")

    result = _pipeline(direct, page, browser).run("40054321")

    assert isinstance(result, Issue)
    assert result.provenance == "page-fetch"


def test_total_failure_returns_failure_record():
    direct = _Strategy("direct", error=TrackerAPIError("down", status=503))
    page = _Strategy("page-fetch", error=requests.Timeout("read timed out"))
    browser = _Strategy("browser-automation", error=RuntimeError("Cookie: SID=secret"))

    result = _pipeline(direct, page, browser).run("40054321")

    assert isinstance(result, FetchFailure)
    payload = result.to_dict()
    assert payload["browserUrl"] == "https://issues.chromium.org/issues/40054321"
    assert payload["error"].startswith("Failed to fetch issue details")
    assert set(payload["reasons"]) == {"direct", "page-fetch", "browser-automation"}
    assert payload["reasons"]["direct"].startswith("transport.http")
    assert payload["reasons"]["page-fetch"].startswith("transport.timeout")
    assert "secret" not in payload["reasons"]["browser-automation"]
    json.dumps(payload)


def test_empty_results_count_as_failure():
    result = _pipeline(
        _Strategy("direct"), _Strategy("page-fetch"), _Strategy("browser-automation")
    ).run("1")
    assert isinstance(result, FetchFailure)
    assert result.reasons["direct"] == "no fields extracted"


def test_running_twice_yields_identical_records():
    def build() -> PartialRecord:
        return PartialRecord(
            title="Renderer crash on navigate",
            comments=[Comment("a@chromium.org", "2023-11-14T22:13:20.000Z", REAL)],
        )

    pipeline = _pipeline(
        _Strategy("direct", build), _Strategy("page-fetch"), _Strategy("browser-automation")
    )
    first = json.dumps(pipeline.run("40054321").to_dict(), sort_keys=True)
    second = json.dumps(pipeline.run("40054321").to_dict(), sort_keys=True)
    assert first == second
