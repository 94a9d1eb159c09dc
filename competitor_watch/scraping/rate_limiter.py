"""
Domain-aware request rate limiter.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from competitor_watch.scraping.urls import domain_of


class DomainRateLimiter:
    """
    Enforces a minimum interval between requests per domain.

    Each domain has its own lock, so a wait on one domain never delays
    requests to another.
    """

    def __init__(
        self,
        *,
        request_delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._request_delay_seconds = max(0.0, request_delay_seconds)
        self._clock = clock
        self._sleep = sleep
        self._last_request_by_domain: dict[str, float] = {}
        self._domain_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def request_delay_seconds(self) -> float:
        return self._request_delay_seconds

    def wait(
        self,
        *,
        url: str,
        crawl_delay_seconds: float | None = None,
    ) -> float:
        """
        Sleep as needed so outbound requests respect per-domain spacing.

        Returns the number of seconds slept.
        """

        domain = domain_of(url)
        if not domain:
            return 0.0

        min_interval = self._request_delay_seconds
        if crawl_delay_seconds is not None:
            min_interval = max(min_interval, max(0.0, crawl_delay_seconds))

        with self._lock_for(domain):
            last_time = self._last_request_by_domain.get(domain)
            wait_seconds = 0.0
            if last_time is not None:
                wait_seconds = min_interval - (self._clock() - last_time)
                if wait_seconds > 0:
                    self._sleep(wait_seconds)
                else:
                    wait_seconds = 0.0
            self._last_request_by_domain[domain] = self._clock()
            return wait_seconds

    def _lock_for(self, domain: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._domain_locks.get(domain)
            if lock is None:
                lock = threading.Lock()
                self._domain_locks[domain] = lock
            return lock
