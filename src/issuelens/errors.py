"""Error taxonomy & redaction.

Every failure inside an acquisition strategy is classified here before it
is logged or reported, so the pipeline can turn it into a reason string
without leaking session cookies.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import requests

from .wire import DecodeError

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?i)(cookie:\s*)[^\r\n]+"),
    re.compile(r"\b(?:__Secure-[\w-]+|SAPISID|APISID|HSID|SSID|SID|NID|OSID)=[^;\s]+"),
    re.compile(r"ya29\.[\w-]{20,}"),  # OAuth access tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"


class ConfigError(RuntimeError):
    pass


class TrackerAPIError(RuntimeError):
    """Raised when a tracker endpoint answers with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


class BrowserAutomationError(RuntimeError):
    """Raised when the headless browser cannot be started or driven."""


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None

    def reason(self) -> str:
        return f"{self.category}: {self.message}" if self.message else self.category


def redact(text: str) -> str:
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(
            lambda m: (m.group(1) if m.groups() and m.group(1) else "") + _REDACTION_PLACEHOLDER,
            redacted,
        )
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of a strategy failure.

    - TrackerAPIError -> 'transport.http' (transient for 429/5xx)
    - requests timeouts / anything mentioning a timeout -> 'transport.timeout'
    - other requests exceptions -> 'transport.network'
    - JSON / decode errors -> 'decode'
    - BrowserAutomationError or playwright errors -> 'browser'
    - Fallback -> 'generic'
    """
    msg = redact(str(exc) if exc else "")
    name = exc.__class__.__name__
    low = msg.lower()

    if isinstance(exc, TrackerAPIError):
        status = exc.status or 0
        transient = status == 429 or status >= 500
        return ErrorInfo("transport.http", msg, name, transient=transient, details={"status": status})
    if isinstance(exc, requests.Timeout) or "timeout" in low or "timed out" in low:
        return ErrorInfo("transport.timeout", msg, name, transient=True)
    if isinstance(exc, requests.RequestException):
        return ErrorInfo("transport.network", msg, name, transient=True)
    if isinstance(exc, (DecodeError, json.JSONDecodeError, UnicodeDecodeError)):
        return ErrorInfo("decode", msg, name)
    if isinstance(exc, BrowserAutomationError) or exc.__class__.__module__.startswith("playwright"):
        return ErrorInfo("browser", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "ConfigError",
    "TrackerAPIError",
    "BrowserAutomationError",
    "ErrorInfo",
    "classify_error",
    "redact",
]
