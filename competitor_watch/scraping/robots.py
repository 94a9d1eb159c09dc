"""
Opt-in robots.txt compliance for the content fetcher.

Rules are fetched once per origin and kept for the life of the process.
A robots.txt that answers 4xx imposes no restrictions. One that cannot be
reached (network error or 5xx) falls back to ``allow_when_unreachable``.
"""

from __future__ import annotations

import logging
import threading
from urllib.robotparser import RobotFileParser

import requests

from competitor_watch.scraping.logging_utils import log_event
from competitor_watch.scraping.rate_limiter import DomainRateLimiter
from competitor_watch.scraping.urls import origin_of

logger = logging.getLogger(__name__)

ALLOW_ALL = ("User-agent: *", "Allow: /")
DISALLOW_ALL = ("User-agent: *", "Disallow: /")


def _rules_from(lines: list[str] | tuple[str, ...], source_url: str | None = None) -> RobotFileParser:
    rules = RobotFileParser()
    if source_url:
        rules.set_url(source_url)
    rules.parse(lines)
    return rules


class RobotsPolicyManager:
    """
    Answers "may this user agent fetch this URL" and "how long to wait".

    robots.txt requests go through the same per-domain rate limiter as page
    requests when one is supplied. Downloads are serialized per origin, so a
    slow host only blocks callers waiting on that host.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        user_agent: str,
        timeout_seconds: float = 10.0,
        allow_when_unreachable: bool = True,
        rate_limiter: DomainRateLimiter | None = None,
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._allow_when_unreachable = allow_when_unreachable
        self._rate_limiter = rate_limiter
        self._rules_by_origin: dict[str, RobotFileParser] = {}
        self._origin_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def can_fetch(self, url: str) -> bool:
        return self._rules_for(url).can_fetch(self._user_agent, url)

    def crawl_delay(self, url: str) -> float | None:
        """
        Crawl-delay in seconds for our user agent, else the wildcard entry.
        """

        rules = self._rules_for(url)
        for agent in (self._user_agent, "*"):
            delay = rules.crawl_delay(agent)
            if delay is not None:
                return float(delay)
        return None

    def _lock_for(self, origin: str) -> threading.Lock:
        with self._registry_lock:
            return self._origin_locks.setdefault(origin, threading.Lock())

    def _rules_for(self, url: str) -> RobotFileParser:
        origin = origin_of(url)
        with self._registry_lock:
            cached = self._rules_by_origin.get(origin)
        if cached is not None:
            return cached

        with self._lock_for(origin):
            with self._registry_lock:
                cached = self._rules_by_origin.get(origin)
            if cached is not None:
                return cached
            rules = self._download(origin)
            with self._registry_lock:
                self._rules_by_origin[origin] = rules
            return rules

    def _download(self, origin: str) -> RobotFileParser:
        robots_url = f"{origin}/robots.txt"
        fallback = ALLOW_ALL if self._allow_when_unreachable else DISALLOW_ALL
        if self._rate_limiter is not None:
            self._rate_limiter.wait(url=robots_url)
        try:
            response = self._session.get(
                robots_url,
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            log_event(
                logger,
                logging.WARNING,
                "robots_fetch_failed",
                robots_url=robots_url,
                fallback_allow=self._allow_when_unreachable,
                error=str(exc),
            )
            return _rules_from(fallback)

        status_code = response.status_code
        if 200 <= status_code < 300:
            log_event(logger, logging.INFO, "robots_loaded", robots_url=robots_url)
            return _rules_from(response.text.splitlines(), robots_url)
        if 400 <= status_code < 500:
            log_event(logger, logging.INFO, "robots_absent", robots_url=robots_url, status_code=status_code)
            return _rules_from(ALLOW_ALL)

        log_event(
            logger,
            logging.WARNING,
            "robots_unavailable",
            robots_url=robots_url,
            status_code=status_code,
            fallback_allow=self._allow_when_unreachable,
        )
        return _rules_from(fallback)
