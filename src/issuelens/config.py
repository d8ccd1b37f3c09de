from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_BASE_URL = "https://issues.chromium.org"
DEFAULT_TRACKER_ID = "157"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class LensConfig:
    # Tracker
    base_url: str = DEFAULT_BASE_URL
    tracker_id: str = DEFAULT_TRACKER_ID
    cookie: str | None = None
    # HTTP transport
    http_timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    # Comments endpoint
    max_comments: int = 50
    # Browser automation
    browser_enabled: bool = True
    browser_headless: bool = True
    navigation_timeout_ms: int = 30000
    settle_delay_ms: int = 5000
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Concurrency configuration
    concurrency_max_workers: int = 4
    source_file: Path | None = None


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:]) or None
    return value


def default_config() -> LensConfig:
    return LensConfig()


def load_config(path: str | Path) -> LensConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw_any = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    raw = cast(dict[str, Any], raw_any)
    tracker = cast(dict[str, Any], raw.get('tracker', {}) or {})
    http = cast(dict[str, Any], raw.get('http', {}) or {})
    comments = cast(dict[str, Any], raw.get('comments', {}) or {})
    browser = cast(dict[str, Any], raw.get('browser', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    concurrency_config = cast(dict[str, Any], raw.get('concurrency', {}) or {})
    environment = cast(dict[str, Any], raw.get('environment', {}) or {})

    if bool(environment.get('load_dotenv', True)):
        dotenv_path = environment.get('dotenv_path')
        load_dotenv(dotenv_path=p.parent / dotenv_path if dotenv_path else p.parent / '.env')

    defaults = default_config()
    try:
        return LensConfig(
            base_url=str(tracker.get('base_url', defaults.base_url)).rstrip('/'),
            tracker_id=str(tracker.get('tracker_id', defaults.tracker_id)),
            cookie=_resolve_env_var(tracker.get('cookie')),
            http_timeout=float(http.get('timeout', defaults.http_timeout)),
            user_agent=str(http.get('user_agent', defaults.user_agent)),
            max_comments=int(comments.get('max_comments', defaults.max_comments)),
            browser_enabled=bool(browser.get('enabled', defaults.browser_enabled)),
            browser_headless=bool(browser.get('headless', defaults.browser_headless)),
            navigation_timeout_ms=int(
                browser.get('navigation_timeout_ms', defaults.navigation_timeout_ms)
            ),
            settle_delay_ms=int(browser.get('settle_delay_ms', defaults.settle_delay_ms)),
            logging_json_enabled=bool(logging_config.get('json_enabled', False)),
            logging_level=str(logging_config.get('level', 'INFO')),
            concurrency_max_workers=max(1, int(concurrency_config.get('max_workers', 4))),
            source_file=p,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'Invalid value in {p}: {exc}') from exc


__all__ = ["LensConfig", "ConfigError", "default_config", "load_config"]
