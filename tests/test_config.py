"""
tests/test_config.py

Environment-driven settings: defaults, overrides and clamping.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from competitor_watch.config import (
    DEFAULT_USER_AGENT,
    get_scheduler_settings,
    get_scraping_settings,
)

_ENV_NAMES = (
    "COMPETITOR_SCRAPE_TIMEOUT_SECONDS",
    "COMPETITOR_SCRAPE_REQUEST_DELAY_SECONDS",
    "COMPETITOR_SCRAPE_RESPECT_ROBOTS_TXT",
    "COMPETITOR_SCRAPE_ALLOW_WHEN_ROBOTS_UNREACHABLE",
    "COMPETITOR_SCRAPE_CACHE_TTL_SECONDS",
    "COMPETITOR_SCRAPE_FETCH_RETRIES",
    "COMPETITOR_SCRAPE_BACKOFF_INITIAL_SECONDS",
    "COMPETITOR_SCRAPE_BACKOFF_MAX_SECONDS",
    "COMPETITOR_SCRAPE_USER_AGENT",
    "SCRAPE_SCHEDULER_MAX_RETRIES",
    "SCRAPE_SCHEDULER_MAX_CONCURRENT_JOBS",
    "SCRAPE_SCHEDULER_DISPATCH_INTERVAL_SECONDS",
    "SCRAPE_SCHEDULER_RETRY_BASE_DELAY_SECONDS",
    "SCRAPE_SCHEDULER_RETRY_MAX_DELAY_SECONDS",
    "SCRAPE_SCHEDULER_CHANGE_THRESHOLD",
    "SCRAPE_SCHEDULER_DISCOVER_PAGES",
    "SCRAPE_SCHEDULER_AUTOSTART",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    get_scraping_settings.cache_clear()
    get_scheduler_settings.cache_clear()
    yield
    get_scraping_settings.cache_clear()
    get_scheduler_settings.cache_clear()


def test_scraping_defaults() -> None:
    settings = get_scraping_settings()
    assert settings.timeout_seconds == 30.0
    assert settings.request_delay_seconds == 1.0
    assert settings.respect_robots_txt is False
    assert settings.cache_ttl_seconds == 300.0
    assert settings.fetch_retries == 2
    assert settings.user_agent == DEFAULT_USER_AGENT


def test_scheduler_defaults() -> None:
    settings = get_scheduler_settings()
    assert settings.max_retries == 3
    assert settings.max_concurrent_jobs == 5
    assert settings.retry_base_delay_seconds == 60.0
    assert settings.change_threshold == pytest.approx(0.1)
    assert settings.history_limit == 10
    assert settings.discover_pages is True
    assert settings.autostart is True


def test_overrides_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMPETITOR_SCRAPE_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("COMPETITOR_SCRAPE_RESPECT_ROBOTS_TXT", "yes")
    monkeypatch.setenv("COMPETITOR_SCRAPE_USER_AGENT", "  ResearchBot/2.0  ")
    monkeypatch.setenv("SCRAPE_SCHEDULER_MAX_CONCURRENT_JOBS", "8")
    monkeypatch.setenv("SCRAPE_SCHEDULER_AUTOSTART", "off")

    scraping = get_scraping_settings()
    scheduler = get_scheduler_settings()
    assert scraping.timeout_seconds == 12.5
    assert scraping.respect_robots_txt is True
    assert scraping.user_agent == "ResearchBot/2.0"
    assert scheduler.max_concurrent_jobs == 8
    assert scheduler.autostart is False


def test_out_of_range_values_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMPETITOR_SCRAPE_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("COMPETITOR_SCRAPE_FETCH_RETRIES", "-4")
    monkeypatch.setenv("SCRAPE_SCHEDULER_MAX_CONCURRENT_JOBS", "0")
    monkeypatch.setenv("SCRAPE_SCHEDULER_CHANGE_THRESHOLD", "3")
    monkeypatch.setenv("SCRAPE_SCHEDULER_HISTORY_LIMIT", "0")

    assert get_scraping_settings().timeout_seconds == 1.0
    assert get_scraping_settings().fetch_retries == 0
    assert get_scheduler_settings().max_concurrent_jobs == 1
    assert get_scheduler_settings().change_threshold == 1.0
    assert get_scheduler_settings().history_limit == 1


def test_unparseable_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMPETITOR_SCRAPE_CACHE_TTL_SECONDS", "five minutes")
    monkeypatch.setenv("SCRAPE_SCHEDULER_MAX_RETRIES", "many")
    monkeypatch.setenv("COMPETITOR_SCRAPE_USER_AGENT", "   ")

    assert get_scraping_settings().cache_ttl_seconds == 300.0
    assert get_scraping_settings().user_agent == DEFAULT_USER_AGENT
    assert get_scheduler_settings().max_retries == 3


def test_settings_are_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_scheduler_settings()
    monkeypatch.setenv("SCRAPE_SCHEDULER_MAX_RETRIES", "9")
    assert get_scheduler_settings() is first
