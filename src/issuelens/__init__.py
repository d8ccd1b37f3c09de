"""issuelens - reconstruct Chromium issue tracker records.

High-level public API (stable):

from issuelens import IssueLens

lens = IssueLens.from_config_path('issuelens.config.yaml')
issue = lens.get_issue('https://issues.chromium.org/issues/40054321')
print(issue.to_dict())

results = lens.search_issues('status:open component:Blink', limit=20)
print(results.total)

get_issue never raises for a failed fetch: it returns a FetchFailure
carrying the issue's browser URL instead.
"""

from __future__ import annotations

from .client import IssueLens
from .config import LensConfig, load_config
from .models import Comment, FetchFailure, Issue, IssueSummary, SearchResults
from .schemas import get_schemas

# Version constant (sync manually with pyproject)
__version__ = "0.1.0"

__all__ = [
    "IssueLens",
    "LensConfig",
    "load_config",
    "Comment",
    "Issue",
    "FetchFailure",
    "IssueSummary",
    "SearchResults",
    "get_schemas",
    "__version__",
]
