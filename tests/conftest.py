"""
Shared fixtures. No test touches the network: HTTP goes through FakeSession,
time through FakeClock.
"""

from __future__ import annotations

import pytest

from competitor_watch.config import ScrapingSettings, SchedulerSettings
from tests.fakes import FakeClock


@pytest.fixture()
def scraping_settings() -> ScrapingSettings:
    """Fast settings: no request spacing, no backoff sleeps."""
    return ScrapingSettings(
        timeout_seconds=5.0,
        request_delay_seconds=0.0,
        cache_ttl_seconds=300.0,
        fetch_retries=2,
        backoff_initial_seconds=0.0,
        backoff_max_seconds=0.0,
    )


@pytest.fixture()
def scheduler_settings() -> SchedulerSettings:
    return SchedulerSettings(
        max_retries=2,
        max_concurrent_jobs=5,
        dispatch_interval_seconds=3600.0,
        retry_base_delay_seconds=60.0,
        retry_max_delay_seconds=3600.0,
        change_threshold=0.1,
        discover_pages=False,
        autostart=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
