"""Helpers for the tracker's JSON-over-HTTP envelope.

Responses may start with the anti-hijacking prefix ``)]}'`` followed by a
line terminator; both prefixed and bare bodies are accepted.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any

from .code_tables import as_code

XSSI_PREFIX = ")]}'"
_LEADING_ARRAY = re.compile(r"\[\[.*\]\]", re.DOTALL)


class DecodeError(ValueError):
    """Raised when a response body cannot be turned into JSON."""


def strip_xssi_prefix(text: str) -> str:
    body = text.lstrip("\ufeff").lstrip()
    if body.startswith(XSSI_PREFIX):
        body = body[len(XSSI_PREFIX):]
    return body.strip()


def parse_response(text: str | None) -> Any:
    """Strip the prefix and parse JSON.

    Falls back to the outermost ``[[...]]`` block when the body carries
    trailing framing; raises DecodeError when nothing parses.
    """
    if not text:
        raise DecodeError("empty response body")
    body = strip_xssi_prefix(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        match = _LEADING_ARRAY.search(body)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                pass
        raise DecodeError(f"response is not JSON: {exc}") from exc


def safe_get(node: Any, *path: int) -> Any:
    """Walk list indices, returning None as soon as the shape does not match."""
    current = node
    for idx in path:
        if not isinstance(current, list) or idx < 0 or idx >= len(current):
            return None
        current = current[idx]
    return current


def first_string(node: Any) -> str | None:
    """Return ``node`` if it is a non-empty string, else the first such element of a list."""
    if isinstance(node, str):
        return node or None
    if isinstance(node, list):
        for item in node:
            if isinstance(item, str) and item:
                return item
    return None


def iso_instant(seconds: Any, nanos: Any = None) -> str | None:
    """Convert a ``[seconds, nanos]`` timestamp pair to an ISO-8601 UTC instant."""
    secs = as_code(seconds)
    if secs is None or secs <= 0:
        return None
    frac = as_code(nanos) or 0
    try:
        moment = datetime.fromtimestamp(secs + frac / 1_000_000_000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_from_slot(slot: Any) -> str | None:
    if isinstance(slot, list):
        return iso_instant(safe_get(slot, 0), safe_get(slot, 1))
    return None


__all__ = [
    "XSSI_PREFIX",
    "DecodeError",
    "strip_xssi_prefix",
    "parse_response",
    "safe_get",
    "first_string",
    "iso_instant",
    "timestamp_from_slot",
]
