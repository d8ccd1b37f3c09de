from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_TRACKER_ID, DEFAULT_USER_AGENT, LensConfig
from .errors import TrackerAPIError, redact
from .retry import run_with_retries

HTTP_ERROR_STATUS = 400
ISSUE_URL_RE = re.compile(r"/issues/(\d+)")


def extract_issue_id(value: str | int) -> str:
    """Accept a bare id or any URL containing ``/issues/<digits>``."""
    text = str(value).strip()
    match = ISSUE_URL_RE.search(text)
    return match.group(1) if match else text


@dataclass
class TrackerHttpClient:
    """Thin HTTP client for the tracker's undocumented ``/action`` endpoints.

    Every method returns the raw response text; callers parse it through
    :mod:`issuelens.wire`.
    """

    base_url: str = DEFAULT_BASE_URL
    tracker_id: str = DEFAULT_TRACKER_ID
    cookie: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("User-Agent", self.user_agent)
        self._session.headers.setdefault("Accept", "application/json, text/plain, */*")
        if self.cookie:
            self._session.headers.setdefault("Cookie", self.cookie)

    @classmethod
    def from_config(
        cls, cfg: LensConfig, session: requests.Session | None = None
    ) -> TrackerHttpClient:
        return cls(
            base_url=cfg.base_url,
            tracker_id=cfg.tracker_id,
            cookie=cfg.cookie,
            user_agent=cfg.user_agent,
            timeout=cfg.http_timeout,
            session=session,
        )

    # ---- URLs ---------------------------------------------------------
    def issue_url(self, issue_id: str) -> str:
        return f"{self.base_url}/issues/{issue_id}"

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/issues?q={quote(query)}"

    # ---- request helper -----------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
        referer: str | None = None,
    ) -> str:
        url = path if path.startswith("http") else f"{self.base_url}/{path.lstrip('/')}"
        headers = dict(self._session.headers)
        headers["Referer"] = referer or f"{self.base_url}/"
        data: str | None = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body)

        def _run() -> requests.Response:
            return self._session.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )

        response = run_with_retries(_run)
        if response.status_code >= HTTP_ERROR_STATUS:
            raise TrackerAPIError(
                f"tracker {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=redact(response.text or "")[:500],
            )
        return response.text or ""

    # ---- issue endpoints ----------------------------------------------
    def get_summary(self, issue_id: str) -> str:
        return self._request(
            "POST",
            f"/action/issues/{issue_id}/getSummary",
            referer=self.issue_url(issue_id),
        )

    def list_events(self, issue_id: str) -> str:
        return self._request(
            "GET",
            f"/action/issues/{issue_id}/events",
            params={"currentTrackerId": self.tracker_id},
            referer=self.issue_url(issue_id),
        )

    def batch_comments(self, issue_id: str, max_comments: int = 50) -> str:
        payload = [
            [
                "b.BatchGetIssueCommentsRequest",
                {"issueId": int(issue_id), "maxComments": max_comments},
            ]
        ]
        return self._request(
            "POST",
            "/action/comments/batch",
            body=payload,
            referer=self.issue_url(issue_id),
        )

    def fetch_issue_page(self, issue_id: str) -> str:
        return self._request("GET", self.issue_url(issue_id))

    # ---- search -------------------------------------------------------
    def search(self, query: str, *, limit: int = 50, start_index: int = 0) -> str:
        search_params: list[Any] = [query, "modified_time desc", limit]
        if start_index > 0:
            search_params.append(f"start_index:{start_index}")
        payload = [None, None, None, None, None, [self.tracker_id], search_params]
        return self._request("POST", "/action/issues/list", body=payload)


__all__ = ["TrackerHttpClient", "extract_issue_id"]
