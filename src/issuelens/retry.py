"""Retry / backoff for the HTTP transport.

``run_with_retries`` calls a thunk returning a ``requests.Response`` and
repeats it while the status is transient (429, 502, 503, 504) or the
connection dropped, sleeping with exponential backoff plus jitter. A
``Retry-After`` header (or a "wait N seconds" hint in the body) overrides
the computed backoff.

Environment overrides:
  ISSUELENS_RETRY_ATTEMPTS (default 3)
  ISSUELENS_RETRY_BASE (seconds base, default 0.5)
  ISSUELENS_RETRY_MAX_SLEEP (cap in seconds, unset by default)

Acquisition strategies never retry on their own; this is the only retry
policy in the package.
"""

from __future__ import annotations

import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

from .logging import get_logger

TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})

_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: _env_int("ISSUELENS_RETRY_ATTEMPTS", 3))
    base_sleep: float = field(default_factory=lambda: _env_float("ISSUELENS_RETRY_BASE", 0.5))


def is_transient(response: requests.Response) -> bool:
    return response.status_code in TRANSIENT_STATUSES


def _extract_explicit_backoff(response: requests.Response | None) -> float | None:
    """Seconds requested by the server via Retry-After or a body hint."""
    if response is None:
        return None
    header = response.headers.get("Retry-After") if response.headers else None
    if header:
        try:
            val = float(header)
            return val if val > 0 else None
        except ValueError:
            return None
    m = _RE_SECONDS_HINT.search(response.text or "")
    if m:
        val = float(m.group(1))
        return val if val > 0 else None
    return None


def _compute_sleep(attempt: int, cfg: RetryConfig, response: requests.Response | None) -> float:
    explicit = _extract_explicit_backoff(response)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("ISSUELENS_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
            if cap >= 0:
                sleep_for = min(sleep_for, cap)
        except ValueError:  # pragma: no cover
            return sleep_for
    return sleep_for


def run_with_retries(
    fn: Callable[[], requests.Response], *, cfg: RetryConfig | None = None
) -> requests.Response:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    logger = get_logger()
    for attempt in range(1, attempts + 1):
        try:
            response = fn()
        except requests.ConnectionError:
            if attempt >= attempts:
                raise
            sleep_for = _compute_sleep(attempt, cfg, None)
        else:
            if attempt >= attempts or not is_transient(response):
                return response
            sleep_for = _compute_sleep(attempt, cfg, response)
        logger.debug(
            "transient transport error, retrying",
            attempt=attempt,
            attempts=attempts,
            sleep_seconds=round(sleep_for, 2),
        )
        time.sleep(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "TRANSIENT_STATUSES", "run_with_retries", "is_transient"]
