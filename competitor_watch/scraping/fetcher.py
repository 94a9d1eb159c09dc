"""
Rate-limited, timeout-bounded HTTP fetcher.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests

from competitor_watch.config import ScrapingSettings
from competitor_watch.domain.scraped_records import FetchedPage
from competitor_watch.errors import HttpStatusError, NetworkError, RobotsDisallowedError
from competitor_watch.scraping.logging_utils import elapsed_ms, log_event
from competitor_watch.scraping.rate_limiter import DomainRateLimiter
from competitor_watch.scraping.robots import RobotsPolicyManager

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

ACCEPT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class ContentFetcher:
    """
    Performs HTTP GETs through the shared rate limiter and robots policy.
    """

    def __init__(
        self,
        *,
        settings: ScrapingSettings,
        session: requests.Session | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        robots_policy: RobotsPolicyManager | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or DomainRateLimiter(
            request_delay_seconds=settings.request_delay_seconds,
        )
        self.robots_policy = robots_policy
        if self.robots_policy is None and settings.respect_robots_txt:
            self.robots_policy = RobotsPolicyManager(
                session=self.session,
                user_agent=settings.user_agent,
                timeout_seconds=min(settings.timeout_seconds, 10.0),
                allow_when_unreachable=settings.allow_when_robots_unreachable,
                rate_limiter=self.rate_limiter,
            )
        self.request_headers = {"User-Agent": settings.user_agent, **ACCEPT_HEADERS}
        self._sleep = sleep

    def fetch(self, url: str) -> FetchedPage:
        """
        GET `url` and return the body.

        Raises RobotsDisallowedError, NetworkError or HttpStatusError.
        """

        crawl_delay = self._check_robots(url)
        started = time.monotonic()
        response, retry_count = self._request_with_retry(url, crawl_delay=crawl_delay)
        fetch_ms = elapsed_ms(started)
        log_event(
            logger,
            logging.DEBUG,
            "page_fetched",
            url=url,
            status_code=response.status_code,
            retry_count=retry_count,
            response_time_ms=round(fetch_ms, 1),
        )
        return FetchedPage(
            url=url,
            final_url=str(getattr(response, "url", "") or url),
            status_code=response.status_code,
            text=response.text,
            response_time_ms=fetch_ms,
            retry_count=retry_count,
        )

    def probe(self, url: str, *, timeout_seconds: float = 3.0) -> bool:
        """
        Return True when a HEAD request to `url` answers 2xx.

        Probe failures are never raised; they only mean "not available".
        """

        try:
            crawl_delay = self._check_robots(url)
        except RobotsDisallowedError:
            return False

        self.rate_limiter.wait(url=url, crawl_delay_seconds=crawl_delay)
        try:
            response = self.session.head(
                url,
                headers=self.request_headers,
                timeout=timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            log_event(logger, logging.DEBUG, "probe_failed", url=url, error=str(exc))
            return False
        return 200 <= response.status_code < 300

    def _check_robots(self, url: str) -> float | None:
        if self.robots_policy is None:
            return None
        if not self.robots_policy.can_fetch(url):
            log_event(logger, logging.WARNING, "page_blocked_by_robots", url=url)
            raise RobotsDisallowedError(url)
        return self.robots_policy.crawl_delay(url)

    def _request_with_retry(
        self,
        url: str,
        *,
        crawl_delay: float | None,
    ) -> tuple[requests.Response, int]:
        last_error: NetworkError | HttpStatusError | None = None

        for attempt in range(self.settings.fetch_retries + 1):
            self.rate_limiter.wait(url=url, crawl_delay_seconds=crawl_delay)
            try:
                response = self.session.get(
                    url,
                    headers=self.request_headers,
                    timeout=self.settings.timeout_seconds,
                    allow_redirects=True,
                )
            except requests.Timeout as exc:
                last_error = NetworkError(url, f"timed out after {self.settings.timeout_seconds}s ({exc})")
            except requests.RequestException as exc:
                last_error = NetworkError(url, str(exc))
            else:
                if 200 <= response.status_code < 300:
                    return response, attempt
                last_error = HttpStatusError(url, response.status_code, getattr(response, "reason", "") or "")
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    last_error.retry_count = attempt
                    raise last_error

            if attempt >= self.settings.fetch_retries:
                break

            backoff_seconds = min(
                self.settings.backoff_initial_seconds * (2**attempt),
                self.settings.backoff_max_seconds,
            )
            log_event(
                logger,
                logging.WARNING,
                "fetch_retry",
                url=url,
                attempt=attempt + 1,
                backoff_seconds=backoff_seconds,
                error=str(last_error),
            )
            self._sleep(backoff_seconds)

        last_error.retry_count = self.settings.fetch_retries
        raise last_error
