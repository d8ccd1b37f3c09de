"""Concurrent fetching of several issues.

Pipelines share no mutable state, so each issue gets its own pipeline
(built by ``pipeline_factory``) and runs on a worker thread. Results are
returned in input order.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from .logging import get_logger
from .models import FetchFailure, Issue
from .pipeline import AcquisitionPipeline

FetchResult = Issue | FetchFailure


class ConcurrencyConfig:
    """Configuration for concurrency settings."""

    def __init__(self, max_workers: int = 4):
        self.max_workers = max(1, max_workers)


def get_optimal_worker_count(issue_count: int, max_workers: int = 4) -> int:
    """Never start more threads than there are issues."""
    return max(1, min(issue_count, max_workers))


class ConcurrentIssueFetcher:
    """Runs one independent :class:`AcquisitionPipeline` per issue."""

    def __init__(
        self,
        pipeline_factory: Callable[[], AcquisitionPipeline],
        config: ConcurrencyConfig | None = None,
    ):
        self.pipeline_factory = pipeline_factory
        self.config = config or ConcurrencyConfig()
        self.logger = get_logger()

    def _fetch_one(self, issue: str | int) -> FetchResult:
        return self.pipeline_factory().run(issue)

    def fetch_many(self, issues: Sequence[str | int]) -> list[FetchResult]:
        if len(issues) <= 1:
            return [self._fetch_one(issue) for issue in issues]
        workers = get_optimal_worker_count(len(issues), self.config.max_workers)
        self.logger.log_operation(
            "concurrent_fetch_start", issue_count=len(issues), max_workers=workers
        )
        start_time = time.perf_counter()
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._fetch_one, issues))
        duration_ms = (time.perf_counter() - start_time) * 1000
        self.logger.log_performance(
            "concurrent_fetch",
            duration_ms,
            issue_count=len(issues),
            failures=sum(1 for r in results if isinstance(r, FetchFailure)),
        )
        return results

    async def fetch_many_async(self, issues: Sequence[str | int]) -> list[FetchResult]:
        """Same as :meth:`fetch_many` without blocking the running event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.fetch_many, list(issues))


__all__ = [
    "ConcurrencyConfig",
    "ConcurrentIssueFetcher",
    "FetchResult",
    "get_optimal_worker_count",
]
