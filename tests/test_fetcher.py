"""
tests/test_fetcher.py

Fetcher retries, status handling and robots.txt compliance.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

import pytest
import requests

from competitor_watch.config import ScrapingSettings
from competitor_watch.errors import HttpStatusError, NetworkError, RobotsDisallowedError
from competitor_watch.scraping.fetcher import ContentFetcher
from competitor_watch.scraping.rate_limiter import DomainRateLimiter
from competitor_watch.scraping.robots import RobotsPolicyManager
from tests.fakes import FakeMonotonic, FakeResponse, FakeSession

URL = "https://acme.test/pricing"


def _fetcher(settings: ScrapingSettings, session: FakeSession) -> tuple[ContentFetcher, list[float]]:
    sleeps: list[float] = []
    fetcher = ContentFetcher(settings=settings, session=session, sleep=sleeps.append)  # type: ignore[arg-type]
    return fetcher, sleeps


class TimedSession(FakeSession):
    """
    Records the monotonic time of every GET.
    """

    def __init__(self, monotonic: FakeMonotonic, routes: dict[str, Any]) -> None:
        super().__init__(routes)
        self._monotonic = monotonic
        self.timestamps: list[float] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.timestamps.append(self._monotonic())
        return super().get(url, **kwargs)


class BlockingSession(FakeSession):
    """
    Holds GETs for one URL until ``release`` is set.
    """

    def __init__(self, blocked_url: str, routes: dict[str, Any]) -> None:
        super().__init__(routes)
        self._blocked_url = blocked_url
        self.entered = threading.Event()
        self.release = threading.Event()

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        if url == self._blocked_url:
            self.entered.set()
            self.release.wait(timeout=5)
        return super().get(url, **kwargs)


class TestFetch:
    def test_success_returns_page(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: "<html>ok</html>"})
        fetcher, _ = _fetcher(scraping_settings, session)
        page = fetcher.fetch(URL)
        assert page.status_code == 200
        assert page.text == "<html>ok</html>"
        assert page.retry_count == 0
        assert page.final_url == URL

    def test_client_error_is_not_retried(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: FakeResponse(404, reason="Not Found")})
        fetcher, sleeps = _fetcher(scraping_settings, session)
        with pytest.raises(HttpStatusError) as excinfo:
            fetcher.fetch(URL)
        assert excinfo.value.status_code == 404
        assert str(excinfo.value) == "HTTP 404: Not Found"
        assert session.get_count(URL) == 1
        assert sleeps == []

    def test_server_error_is_retried_until_success(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: [FakeResponse(503, reason="Unavailable"), FakeResponse(200, "fine")]})
        fetcher, sleeps = _fetcher(scraping_settings, session)
        page = fetcher.fetch(URL)
        assert page.text == "fine"
        assert page.retry_count == 1
        assert len(sleeps) == 1

    def test_retries_exhausted_raises_last_error(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: FakeResponse(500, reason="Server Error")})
        fetcher, _ = _fetcher(scraping_settings, session)
        with pytest.raises(HttpStatusError) as excinfo:
            fetcher.fetch(URL)
        assert excinfo.value.retry_count == scraping_settings.fetch_retries
        assert session.get_count(URL) == scraping_settings.fetch_retries + 1

    def test_backoff_doubles_and_caps(self) -> None:
        settings = ScrapingSettings(
            request_delay_seconds=0.0,
            fetch_retries=3,
            backoff_initial_seconds=1.0,
            backoff_max_seconds=3.0,
        )
        session = FakeSession({URL: FakeResponse(502)})
        fetcher, sleeps = _fetcher(settings, session)
        with pytest.raises(HttpStatusError):
            fetcher.fetch(URL)
        assert sleeps == [1.0, 2.0, 3.0]

    def test_timeout_becomes_network_error(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: requests.Timeout("read timed out")})
        fetcher, _ = _fetcher(scraping_settings, session)
        with pytest.raises(NetworkError) as excinfo:
            fetcher.fetch(URL)
        assert str(excinfo.value).startswith("Network error: timed out after 5.0s")

    def test_connection_error_becomes_network_error(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: requests.ConnectionError("refused")})
        fetcher, _ = _fetcher(scraping_settings, session)
        with pytest.raises(NetworkError, match="Network error: refused"):
            fetcher.fetch(URL)


class TestRobots:
    ROBOTS_URL = "https://acme.test/robots.txt"

    def _settings(self, scraping_settings: ScrapingSettings, **overrides: object) -> ScrapingSettings:
        return replace(scraping_settings, respect_robots_txt=True, **overrides)  # type: ignore[arg-type]

    def test_robots_is_ignored_by_default(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: "ok", self.ROBOTS_URL: "User-agent: *\nDisallow: /"})
        fetcher, _ = _fetcher(scraping_settings, session)
        assert fetcher.robots_policy is None
        assert fetcher.fetch(URL).text == "ok"

    def test_disallowed_path_raises(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession(
            {
                self.ROBOTS_URL: "User-agent: *\nDisallow: /pricing",
                URL: "ok",
                "https://acme.test/about": "about",
            }
        )
        fetcher, _ = _fetcher(self._settings(scraping_settings), session)
        with pytest.raises(RobotsDisallowedError, match="Scraping not allowed by robots.txt"):
            fetcher.fetch(URL)
        assert session.get_count(URL) == 0
        assert fetcher.fetch("https://acme.test/about").text == "about"
        assert session.get_count(self.ROBOTS_URL) == 1

    def test_missing_robots_allows_everything(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({URL: "ok"})
        fetcher, _ = _fetcher(self._settings(scraping_settings), session)
        assert fetcher.fetch(URL).text == "ok"

    def test_unreachable_robots_follows_fallback_policy(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession({self.ROBOTS_URL: requests.ConnectionError("down"), URL: "ok"})
        settings = self._settings(scraping_settings, allow_when_robots_unreachable=False)
        fetcher, _ = _fetcher(settings, session)
        with pytest.raises(RobotsDisallowedError):
            fetcher.fetch(URL)

    def test_robots_request_is_spaced_like_page_requests(self, scraping_settings: ScrapingSettings) -> None:
        monotonic = FakeMonotonic()
        session = TimedSession(monotonic, {self.ROBOTS_URL: "User-agent: *\nAllow: /", URL: "ok"})
        limiter = DomainRateLimiter(request_delay_seconds=0.5, clock=monotonic, sleep=monotonic.sleep)
        fetcher = ContentFetcher(
            settings=self._settings(scraping_settings, request_delay_seconds=0.5),
            session=session,  # type: ignore[arg-type]
            rate_limiter=limiter,
            sleep=monotonic.sleep,
        )

        assert fetcher.fetch(URL).text == "ok"

        assert [url for _, url in session.calls] == [self.ROBOTS_URL, URL]
        robots_at, page_at = session.timestamps
        assert page_at - robots_at >= 0.5
        assert monotonic.sleeps == [0.5]

    def test_slow_robots_host_does_not_block_other_hosts(self) -> None:
        slow_robots = "https://slow.test/robots.txt"
        session = BlockingSession(slow_robots, {"https://fast.test/robots.txt": "User-agent: *\nDisallow: /private"})
        policy = RobotsPolicyManager(session=session, user_agent="competitor-watch-tests")  # type: ignore[arg-type]
        answers: dict[str, bool] = {}

        slow = threading.Thread(target=lambda: answers.update(slow=policy.can_fetch("https://slow.test/pricing")))
        slow.start()
        try:
            assert session.entered.wait(timeout=2)
            fast = threading.Thread(target=lambda: answers.update(fast=policy.can_fetch("https://fast.test/private")))
            fast.start()
            fast.join(timeout=2)
            assert not fast.is_alive()
            assert answers == {"fast": False}
        finally:
            session.release.set()
            slow.join(timeout=2)
        assert answers["slow"] is True


class TestProbe:
    def test_probe_reports_2xx_only(self, scraping_settings: ScrapingSettings) -> None:
        session = FakeSession()
        session.head_routes["https://acme.test/pricing"] = FakeResponse(200)
        session.head_routes["https://acme.test/error"] = requests.ConnectionError("boom")
        fetcher, _ = _fetcher(scraping_settings, session)
        assert fetcher.probe("https://acme.test/pricing") is True
        assert fetcher.probe("https://acme.test/plans") is False
        assert fetcher.probe("https://acme.test/error") is False
