"""Pytest configuration for issuelens tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`). Shared fixtures
build tracker payloads in the positional shapes the endpoints return.
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path
from typing import Any

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Keep transport retries fast and bounded in tests.
os.environ.setdefault("ISSUELENS_RETRY_BASE", "0")
os.environ.setdefault("ISSUELENS_RETRY_MAX_SLEEP", "0")

INT32 = "type.googleapis.com/google.protobuf.Int32Value"
STRING = "type.googleapis.com/google.protobuf.StringValue"
USER = "type.googleapis.com/google.devtools.issuetracker.v1.User"


def tagged(field: str, tag: str, payload: list[Any]) -> list[Any]:
    return [field, None, [None, [tag, payload]]]


class Payloads:
    """Builders for tracker response fragments."""

    @staticmethod
    def status(code: int) -> list[Any]:
        return tagged("status", INT32, [code])

    @staticmethod
    def priority(code: int) -> list[Any]:
        return tagged("priority", INT32, [code])

    @staticmethod
    def type(code: int) -> list[Any]:
        return tagged("type", INT32, [code])

    @staticmethod
    def severity(code: int) -> list[Any]:
        return tagged("severity", INT32, [code])

    @staticmethod
    def title(text: str) -> list[Any]:
        return tagged("title", STRING, [text])

    @staticmethod
    def reporter(email: str) -> list[Any]:
        return tagged("reporter", USER, [None, email])

    @staticmethod
    def assignee(email: str) -> list[Any]:
        return tagged("assignee", USER, [None, email])

    @staticmethod
    def event(
        author: str, seconds: int, content: Any, metadata: list[Any] | None = None
    ) -> list[Any]:
        return [[None, author], [seconds, 0], content, None, None, metadata or []]

    @staticmethod
    def events_response(*entries: list[Any]) -> list[Any]:
        return [["b.ListIssueEventsResponse", None, list(entries)]]

    @staticmethod
    def batch_comment(author: str, seconds: int, content: Any) -> list[Any]:
        return [author, None, [seconds, 0], content]

    @staticmethod
    def comments_response(*entries: list[Any]) -> list[Any]:
        return [["b.BatchGetIssueCommentsResponse", None, list(entries)]]


@pytest.fixture
def payloads() -> type[Payloads]:
    return Payloads


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        duration = time.perf_counter() - start
        _TEST_DURATIONS.append((item.nodeid, duration))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
    total_time = sum(d for _, d in _TEST_DURATIONS)
    print(
        f"Total recorded test time: {total_time:0.3f}s over {len(_TEST_DURATIONS)} tests"
    )
