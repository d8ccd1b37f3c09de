"""Headless-browser boundary.

The pipeline only needs a :class:`BrowserSession`: navigate, wait for the
page to settle, query DOM text by selector, read the whole page text and
the network responses captured during the load. :func:`playwright_session`
provides one backed by Playwright's Chromium; it is a context manager so
the browser is closed on every exit path.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, Response, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from . import code_tables
from .config import DEFAULT_USER_AGENT, LensConfig
from .crossref import extract_change_ids
from .errors import BrowserAutomationError
from .logging import get_logger
from .merge import is_placeholder_title
from .models import PartialRecord

CAPTURE_URL_MARKERS = ("/batch", "/events", "googleapis.com")
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

TITLE_SELECTORS = (
    '[data-testid="issue-title"]',
    ".issue-title",
    "h1",
    "h2",
    '[role="heading"]',
    '[aria-label*="title"]',
    ".title",
)
STATUS_SELECTORS = (
    '[data-testid="status"]',
    ".status",
    ".issue-status",
    '[aria-label*="status"]',
)
DESCRIPTION_SELECTORS = (
    '[data-testid="description"]',
    ".issue-description",
    ".description",
    '[role="textbox"]',
    ".ql-editor",
    ".comment-content",
)
DESCRIPTION_LIMIT = 500

PRIORITY_RE = re.compile(r"\bP([0-4])\b")
TYPE_RE = re.compile(r"Type:\s*(Bug|Feature|Task)", re.IGNORECASE)
REPORTER_RE = re.compile(r"Reporter:\s*([^\n]+)", re.IGNORECASE)
ASSIGNEE_RE = re.compile(r"Assignee:\s*([^\n]+)", re.IGNORECASE)


@dataclass(frozen=True)
class CapturedResponse:
    url: str
    status: int
    body: str


class BrowserSession(Protocol):
    def navigate(self, url: str, *, timeout_ms: int, settle_ms: int) -> bool: ...

    def text_of(self, selector: str) -> str | None: ...

    def page_text(self) -> str: ...

    def document_title(self) -> str: ...

    def captured_responses(self) -> list[CapturedResponse]: ...


SessionFactory = Callable[[], AbstractContextManager[BrowserSession]]


class PlaywrightSession:
    """BrowserSession over a single Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._responses: list[Response] = []
        page.on("response", self._on_response)

    def _on_response(self, response: Response) -> None:
        if any(marker in response.url for marker in CAPTURE_URL_MARKERS):
            self._responses.append(response)

    def navigate(self, url: str, *, timeout_ms: int, settle_ms: int) -> bool:
        completed = True
        try:
            self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            get_logger().warning("page navigation timed out", url=url, timeout_ms=timeout_ms)
            completed = False
        self._page.wait_for_timeout(settle_ms)
        return completed

    def text_of(self, selector: str) -> str | None:
        try:
            element = self._page.query_selector(selector)
            return element.text_content() if element else None
        except PlaywrightError:
            return None

    def page_text(self) -> str:
        text: Any = self._page.evaluate("() => document.body ? document.body.innerText : ''")
        return text if isinstance(text, str) else ""

    def document_title(self) -> str:
        return self._page.title() or ""

    def captured_responses(self) -> list[CapturedResponse]:
        out: list[CapturedResponse] = []
        for response in self._responses:
            try:
                body = response.text()
            except PlaywrightError as exc:
                get_logger().debug("response body unavailable", url=response.url, error=str(exc))
                continue
            out.append(CapturedResponse(response.url, response.status, body))
        return out


@contextmanager
def playwright_session(
    *,
    headless: bool = True,
    user_agent: str = DEFAULT_USER_AGENT,
    cookie: str | None = None,
) -> Iterator[PlaywrightSession]:
    """Launch Chromium for the duration of the ``with`` block."""
    manager = sync_playwright().start()
    browser = None
    try:
        try:
            browser = manager.chromium.launch(headless=headless, args=LAUNCH_ARGS)
        except PlaywrightError as exc:
            raise BrowserAutomationError(f"could not launch chromium: {exc}") from exc
        context = browser.new_context(user_agent=user_agent)
        if cookie:
            context.set_extra_http_headers({"Cookie": cookie})
        yield PlaywrightSession(context.new_page())
    finally:
        try:
            if browser is not None:
                browser.close()
        finally:
            manager.stop()


def session_factory_from_config(cfg: LensConfig) -> SessionFactory:
    def _factory() -> AbstractContextManager[BrowserSession]:
        return playwright_session(
            headless=cfg.browser_headless, user_agent=cfg.user_agent, cookie=cfg.cookie
        )

    return _factory


# ---- DOM extraction -------------------------------------------------


def _first_selector_text(
    session: BrowserSession, selectors: tuple[str, ...], accept: Callable[[str], bool]
) -> str | None:
    for selector in selectors:
        text = session.text_of(selector)
        if text and accept(text.strip()):
            return text.strip()
    return None


def extract_dom_record(session: BrowserSession) -> PartialRecord:
    """Scrape what the rendered page shows into a PartialRecord."""
    record = PartialRecord()
    record.title = _first_selector_text(
        session, TITLE_SELECTORS, lambda t: len(t) > 10 and not is_placeholder_title(t)
    )
    status = _first_selector_text(
        session, STATUS_SELECTORS, lambda t: t.upper() in code_tables.STATUS.known_labels()
    )
    record.status = status.upper() if status else None
    description = _first_selector_text(session, DESCRIPTION_SELECTORS, lambda t: len(t) > 20)
    record.description = description[:DESCRIPTION_LIMIT] if description else None

    if record.title is None:
        doc_title = re.sub(r"\s+-.*$", "", session.document_title()).strip()
        if len(doc_title) > 5 and not is_placeholder_title(doc_title):
            record.title = doc_title

    text = session.page_text()
    m = PRIORITY_RE.search(text)
    if m:
        record.priority = code_tables.PRIORITY.label(int(m.group(1)))
    m = TYPE_RE.search(text)
    if m:
        record.type = m.group(1).capitalize()
    m = REPORTER_RE.search(text)
    if m and m.group(1).strip():
        record.reporter = m.group(1).strip()
    m = ASSIGNEE_RE.search(text)
    if m and m.group(1).strip():
        record.assignee = m.group(1).strip()
    record.related_change_ids = extract_change_ids(text)
    return record


__all__ = [
    "CapturedResponse",
    "BrowserSession",
    "SessionFactory",
    "PlaywrightSession",
    "playwright_session",
    "session_factory_from_config",
    "extract_dom_record",
]
