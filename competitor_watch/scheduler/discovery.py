"""
Page discovery for competitor job fan-out.
"""

from __future__ import annotations

import logging

from competitor_watch.domain.scraping_jobs import JobType
from competitor_watch.scraping.fetcher import ContentFetcher

logger = logging.getLogger(__name__)

COMMON_PATHS: dict[JobType, tuple[str, ...]] = {
    JobType.PRICING: ("/pricing", "/plans", "/subscribe", "/buy", "/purchase"),
    JobType.PRODUCT: ("/products", "/features", "/solutions", "/services"),
    JobType.JOBS: ("/careers", "/jobs", "/hiring", "/join", "/work-with-us"),
}


class PageDiscovery:
    """
    Finds category pages on a competitor site by probing common paths.
    """

    def __init__(self, *, fetcher: ContentFetcher, timeout_seconds: float = 3.0) -> None:
        self._fetcher = fetcher
        self._timeout_seconds = timeout_seconds

    def find_page(self, base_url: str, job_type: JobType) -> str | None:
        """
        Return the first common path for `job_type` that answers 2xx, if any.
        """

        for path in COMMON_PATHS.get(job_type, ()):
            url = f"{base_url.rstrip('/')}{path}"
            if self._fetcher.probe(url, timeout_seconds=self._timeout_seconds):
                logger.info("Discovered %s page for %s: %s", job_type.value, base_url, url)
                return url
        logger.debug("No %s page found for %s", job_type.value, base_url)
        return None
