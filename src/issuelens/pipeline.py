"""Ordered acquisition of a single issue.

``direct`` runs first and short-circuits when it alone is sufficient.
Otherwise ``page-fetch`` and ``browser-automation`` both run and the three
partial records are merged in run order. A strategy that raises contributes
an empty record plus a reason; nothing escapes :meth:`AcquisitionPipeline.run`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .errors import classify_error, redact
from .logging import get_logger
from .merge import merge_partials, to_issue
from .models import FetchFailure, Issue, PartialRecord
from .strategies import AcquisitionStrategy, StrategyResult
from .tracker_http import extract_issue_id

SUFFICIENT_DESCRIPTION_LENGTH = 20
TOTAL_FAILURE_ERROR = "Failed to fetch issue details: no strategy produced data"


def is_sufficient(record: PartialRecord) -> bool:
    """At least one comment, or a description longer than 20 characters."""
    if record.comments:
        return True
    return len(record.description or "") > SUFFICIENT_DESCRIPTION_LENGTH


class AcquisitionPipeline:
    def __init__(
        self,
        direct: AcquisitionStrategy,
        fallbacks: Sequence[AcquisitionStrategy],
        url_for: Callable[[str], str],
    ) -> None:
        self.direct = direct
        self.fallbacks = list(fallbacks)
        self.url_for = url_for
        self.logger = get_logger()

    def _attempt(self, strategy: AcquisitionStrategy, issue_id: str) -> StrategyResult:
        try:
            record = strategy.acquire(issue_id)
        except Exception as exc:
            info = classify_error(exc)
            reason = redact(info.reason())
            self.logger.log_strategy(
                strategy.name, issue_id, "failed", category=info.category, error=reason
            )
            return StrategyResult.empty(strategy.name, reason)
        if not record.has_data():
            self.logger.log_strategy(strategy.name, issue_id, "empty")
            return StrategyResult.empty(strategy.name, "no fields extracted")
        self.logger.log_strategy(
            strategy.name, issue_id, "succeeded", fields=record.populated_fields()
        )
        return StrategyResult.success(strategy.name, record)

    def run(self, issue: str | int) -> Issue | FetchFailure:
        issue_id = extract_issue_id(issue)
        browser_url = self.url_for(issue_id)
        with self.logger.timed_operation("acquire_issue", issue_id=issue_id):
            first = self._attempt(self.direct, issue_id)
            if first.usable and is_sufficient(first.record):
                return to_issue(
                    merge_partials([first.record]),
                    issue_id=issue_id,
                    browser_url=browser_url,
                    provenance=first.name,
                )
            results = [first] + [self._attempt(s, issue_id) for s in self.fallbacks]
            usable = [r for r in results if r.usable]
            if not usable:
                return FetchFailure(
                    issue_id=issue_id,
                    browser_url=browser_url,
                    error=TOTAL_FAILURE_ERROR,
                    reasons={r.name: r.reason or "no fields extracted" for r in results},
                )
            merged = merge_partials([r.record for r in usable])
            return to_issue(
                merged,
                issue_id=issue_id,
                browser_url=browser_url,
                provenance=usable[-1].name,
            )


__all__ = ["AcquisitionPipeline", "is_sufficient", "SUFFICIENT_DESCRIPTION_LENGTH"]
