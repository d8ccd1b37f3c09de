from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import requests

from .browser import SessionFactory, session_factory_from_config
from .concurrency import ConcurrencyConfig, ConcurrentIssueFetcher, FetchResult
from .config import LensConfig, default_config, load_config
from .logging import configure_logging
from .models import SearchResults
from .pipeline import AcquisitionPipeline
from .search import decode_search_response
from .strategies import (
    AcquisitionStrategy,
    BrowserAutomationStrategy,
    DirectApiStrategy,
    PageFetchStrategy,
)
from .tracker_http import TrackerHttpClient
from .wire import parse_response


class IssueLens:
    """Library entry point: single issues, batches and searches.

    ``http_session`` and ``browser_factory`` replace the real ``requests``
    session and Playwright browser; tests pass fakes here.
    """

    def __init__(
        self,
        cfg: LensConfig | None = None,
        *,
        http_session: requests.Session | None = None,
        browser_factory: SessionFactory | None = None,
    ):
        self.cfg = cfg or default_config()
        self._http_session = http_session
        self._browser_factory = browser_factory
        self._logger = configure_logging(
            json_logging=self.cfg.logging_json_enabled, level=self.cfg.logging_level
        )
        self._concurrency_config = ConcurrencyConfig(
            max_workers=self.cfg.concurrency_max_workers
        )
        self.client = self._new_client()

    @classmethod
    def from_config_path(cls, path: str | Path) -> IssueLens:
        return cls(load_config(path))

    def _new_client(self) -> TrackerHttpClient:
        return TrackerHttpClient.from_config(self.cfg, session=self._http_session)

    def build_pipeline(self) -> AcquisitionPipeline:
        """A fresh pipeline with its own HTTP client; safe to run on any thread."""
        client = self._new_client()
        fallbacks: list[AcquisitionStrategy] = [PageFetchStrategy(client)]
        if self.cfg.browser_enabled:
            factory = self._browser_factory or session_factory_from_config(self.cfg)
            fallbacks.append(
                BrowserAutomationStrategy(
                    factory,
                    client.issue_url,
                    navigation_timeout_ms=self.cfg.navigation_timeout_ms,
                    settle_delay_ms=self.cfg.settle_delay_ms,
                )
            )
        return AcquisitionPipeline(
            DirectApiStrategy(client, max_comments=self.cfg.max_comments),
            fallbacks,
            client.issue_url,
        )

    def get_issue(self, issue: str | int) -> FetchResult:
        return self.build_pipeline().run(issue)

    def get_issues(self, issues: Sequence[str | int]) -> list[FetchResult]:
        fetcher = ConcurrentIssueFetcher(self.build_pipeline, self._concurrency_config)
        return fetcher.fetch_many(issues)

    async def get_issues_async(self, issues: Sequence[str | int]) -> list[FetchResult]:
        fetcher = ConcurrentIssueFetcher(self.build_pipeline, self._concurrency_config)
        return await fetcher.fetch_many_async(issues)

    def search_issues(self, query: str, *, limit: int = 50, start_index: int = 0) -> SearchResults:
        """Run a list query; transport and decode errors propagate to the caller."""
        with self._logger.timed_operation("search_issues", query=query, limit=limit):
            text = self.client.search(query, limit=limit, start_index=start_index)
            return decode_search_response(
                parse_response(text),
                query=query,
                url_for=self.client.issue_url,
                search_url=self.client.search_url(query),
            )


__all__ = ["IssueLens"]
