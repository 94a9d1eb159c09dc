"""
competitor_watch/config.py

Environment-driven settings for the scraping engine and the job scheduler.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_USER_AGENT = "CompetitorWatchBot/1.0 (+https://example.com/bot)"


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class ScrapingSettings:
    """
    Runtime settings for fetching, caching and rate limiting.
    """

    timeout_seconds: float = 30.0
    request_delay_seconds: float = 1.0
    respect_robots_txt: bool = False
    allow_when_robots_unreachable: bool = True
    cache_ttl_seconds: float = 300.0
    fetch_retries: int = 2
    backoff_initial_seconds: float = 0.5
    backoff_max_seconds: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Runtime settings for the scraping job scheduler.
    """

    max_retries: int = 3
    max_concurrent_jobs: int = 5
    dispatch_interval_seconds: float = 30.0
    retry_base_delay_seconds: float = 60.0
    retry_max_delay_seconds: float = 3600.0
    change_threshold: float = 0.1
    history_limit: int = 10
    discover_pages: bool = True
    autostart: bool = True


@lru_cache(maxsize=1)
def get_scraping_settings() -> ScrapingSettings:
    """
    Return cached scraping settings from environment variables.
    """

    return ScrapingSettings(
        timeout_seconds=max(1.0, _get_float_env("COMPETITOR_SCRAPE_TIMEOUT_SECONDS", 30.0)),
        request_delay_seconds=max(
            0.0,
            _get_float_env("COMPETITOR_SCRAPE_REQUEST_DELAY_SECONDS", 1.0),
        ),
        respect_robots_txt=_get_bool_env("COMPETITOR_SCRAPE_RESPECT_ROBOTS_TXT", False),
        allow_when_robots_unreachable=_get_bool_env(
            "COMPETITOR_SCRAPE_ALLOW_WHEN_ROBOTS_UNREACHABLE",
            True,
        ),
        cache_ttl_seconds=max(0.0, _get_float_env("COMPETITOR_SCRAPE_CACHE_TTL_SECONDS", 300.0)),
        fetch_retries=max(0, _get_int_env("COMPETITOR_SCRAPE_FETCH_RETRIES", 2)),
        backoff_initial_seconds=max(
            0.0,
            _get_float_env("COMPETITOR_SCRAPE_BACKOFF_INITIAL_SECONDS", 0.5),
        ),
        backoff_max_seconds=max(0.0, _get_float_env("COMPETITOR_SCRAPE_BACKOFF_MAX_SECONDS", 5.0)),
        user_agent=_get_str_env("COMPETITOR_SCRAPE_USER_AGENT", DEFAULT_USER_AGENT),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    """
    Return cached scheduler settings from environment variables.
    """

    return SchedulerSettings(
        max_retries=max(0, _get_int_env("SCRAPE_SCHEDULER_MAX_RETRIES", 3)),
        max_concurrent_jobs=max(1, _get_int_env("SCRAPE_SCHEDULER_MAX_CONCURRENT_JOBS", 5)),
        dispatch_interval_seconds=max(
            1.0,
            _get_float_env("SCRAPE_SCHEDULER_DISPATCH_INTERVAL_SECONDS", 30.0),
        ),
        retry_base_delay_seconds=max(
            0.0,
            _get_float_env("SCRAPE_SCHEDULER_RETRY_BASE_DELAY_SECONDS", 60.0),
        ),
        retry_max_delay_seconds=max(
            0.0,
            _get_float_env("SCRAPE_SCHEDULER_RETRY_MAX_DELAY_SECONDS", 3600.0),
        ),
        change_threshold=min(
            1.0,
            max(0.0, _get_float_env("SCRAPE_SCHEDULER_CHANGE_THRESHOLD", 0.1)),
        ),
        history_limit=max(1, _get_int_env("SCRAPE_SCHEDULER_HISTORY_LIMIT", 10)),
        discover_pages=_get_bool_env("SCRAPE_SCHEDULER_DISCOVER_PAGES", True),
        autostart=_get_bool_env("SCRAPE_SCHEDULER_AUTOSTART", True),
    )
