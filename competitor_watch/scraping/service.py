"""
competitor_watch/scraping/service.py

Scraping service: fetch, extract, cache and diff a single page.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

import requests

from competitor_watch.config import ScrapingSettings
from competitor_watch.domain.scraped_records import (
    ChangeEvent,
    JobPostingData,
    PricingData,
    ProductData,
    ScrapeResult,
    WebsiteData,
)
from competitor_watch.domain.scraping_jobs import JobType
from competitor_watch.errors import ScrapingError
from competitor_watch.scraping.cache import ResultCache
from competitor_watch.scraping.change_detection import ChangeDetector
from competitor_watch.scraping.fetcher import ContentFetcher
from competitor_watch.scraping.logging_utils import elapsed_ms, log_event
from competitor_watch.scraping.parsing import HTMLParsingLayer
from competitor_watch.scraping.registry import extractor_for
from competitor_watch.scraping.urls import is_http_url, normalize_url

logger = logging.getLogger(__name__)

OPERATION_NAMES: dict[JobType, str] = {
    JobType.WEBSITE: "scrape_competitor_website",
    JobType.PRICING: "monitor_pricing_pages",
    JobType.PRODUCT: "track_product_pages",
    JobType.JOBS: "scrape_job_postings",
}
if set(OPERATION_NAMES) != set(JobType):
    raise RuntimeError("Every job type needs a scraping operation.")


class ScrapingService:
    """
    Orchestrates fetcher, extractors, result cache and change detector.

    One rate limiter (inside the fetcher) and one cache are shared by every
    operation, whichever worker thread calls it.
    """

    def __init__(
        self,
        *,
        settings: ScrapingSettings,
        session: requests.Session | None = None,
        fetcher: ContentFetcher | None = None,
        cache: ResultCache[ScrapeResult[Any]] | None = None,
        change_detector: ChangeDetector | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher or ContentFetcher(settings=settings, session=session)
        self.cache: ResultCache[ScrapeResult[Any]] = (
            cache if cache is not None else ResultCache(ttl_seconds=settings.cache_ttl_seconds)
        )
        self.change_detector = change_detector or ChangeDetector()

    def scrape_competitor_website(self, url: str, *, use_cache: bool = True) -> ScrapeResult[WebsiteData]:
        """
        Fetch a page and extract title, description, visible text and metadata.

        ``use_cache=False`` refetches the page and refreshes the cached copy.
        """

        return self._cached(JobType.WEBSITE, url, lambda: self._fetch_website(url), use_cache=use_cache)

    def monitor_pricing_pages(self, url: str, *, use_cache: bool = True) -> ScrapeResult[PricingData]:
        return self._cached(
            JobType.PRICING,
            url,
            lambda: self._extract_category(JobType.PRICING, url, use_cache=use_cache),
            use_cache=use_cache,
        )

    def track_product_pages(self, url: str, *, use_cache: bool = True) -> ScrapeResult[ProductData]:
        return self._cached(
            JobType.PRODUCT,
            url,
            lambda: self._extract_category(JobType.PRODUCT, url, use_cache=use_cache),
            use_cache=use_cache,
        )

    def scrape_job_postings(self, url: str, *, use_cache: bool = True) -> ScrapeResult[JobPostingData]:
        return self._cached(
            JobType.JOBS,
            url,
            lambda: self._extract_category(JobType.JOBS, url, use_cache=use_cache),
            use_cache=use_cache,
        )

    def scrape(self, job_type: JobType | str, url: str, *, use_cache: bool = True) -> ScrapeResult[Any]:
        """
        Run the operation mapped to `job_type`.
        """

        operation: Callable[..., ScrapeResult[Any]] = getattr(self, OPERATION_NAMES[JobType(job_type)])
        return operation(url, use_cache=use_cache)

    def purge_cache(self) -> int:
        """
        Drop expired cache entries; returns how many were removed.
        """

        return self.cache.purge_expired()

    def detect_website_changes(
        self,
        url: str,
        previous_content: str | None = None,
        *,
        threshold: float = 0.0,
    ) -> ScrapeResult[list[ChangeEvent]]:
        """
        Diff the current page content against `previous_content`.

        With the default threshold of 0 any difference is reported.
        """

        started = time.monotonic()
        result = self.scrape_competitor_website(url)
        if not result.success or result.data is None:
            return ScrapeResult.fail(
                result.error or "Change detection failed",
                retry_count=result.retry_count,
                response_time_ms=elapsed_ms(started),
            )

        changes: list[ChangeEvent] = []
        if previous_content is not None:
            changes = self.change_detector.compare(
                previous_content,
                result.data.content,
                threshold=threshold,
            )
        log_event(
            logger,
            logging.INFO,
            "website_changes_checked",
            url=url,
            changes=len(changes),
            cached=result.cached,
        )
        return ScrapeResult(
            success=True,
            data=changes,
            retry_count=result.retry_count,
            response_time_ms=elapsed_ms(started),
            cached=result.cached,
        )

    def close(self) -> None:
        self.fetcher.session.close()

    def _cached(
        self,
        job_type: JobType,
        url: str,
        compute: Callable[[], ScrapeResult[Any]],
        *,
        use_cache: bool = True,
    ) -> ScrapeResult[Any]:
        started = time.monotonic()
        if not is_http_url(url):
            log_event(logger, logging.WARNING, "invalid_url", url=url, job_type=job_type.value)
            return ScrapeResult.fail(f"Invalid URL: {url}")

        key = (job_type, normalize_url(url))
        result, hit = self.cache.get_or_compute(
            key,
            compute,
            should_store=lambda value: value.success,
            refresh=not use_cache,
        )
        if hit:
            log_event(logger, logging.DEBUG, "cache_hit", url=url, job_type=job_type.value)
            return replace(result, cached=True, response_time_ms=elapsed_ms(started))
        return result

    def _fetch_website(self, url: str) -> ScrapeResult[WebsiteData]:
        started = time.monotonic()
        try:
            page = self.fetcher.fetch(url)
            website = HTMLParsingLayer.extract_website(page=page)
        except ScrapingError as exc:
            log_event(
                logger,
                logging.WARNING,
                "page_scrape_failed",
                url=url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ScrapeResult.fail(
                str(exc),
                retry_count=exc.retry_count,
                response_time_ms=elapsed_ms(started),
            )

        log_event(
            logger,
            logging.INFO,
            "page_scraped",
            url=url,
            status_code=website.status_code,
            title=website.title,
        )
        return ScrapeResult.ok(
            website,
            retry_count=page.retry_count,
            response_time_ms=elapsed_ms(started),
        )

    def _extract_category(self, job_type: JobType, url: str, *, use_cache: bool = True) -> ScrapeResult[Any]:
        started = time.monotonic()
        website_result = self.scrape_competitor_website(url, use_cache=use_cache)
        if not website_result.success or website_result.data is None:
            return ScrapeResult.fail(
                website_result.error or "Scraping failed",
                retry_count=website_result.retry_count,
                response_time_ms=elapsed_ms(started),
            )

        try:
            record = extractor_for(job_type)(website_result.data)
        except ScrapingError as exc:
            log_event(
                logger,
                logging.WARNING,
                "extraction_empty",
                url=url,
                job_type=job_type.value,
                error=str(exc),
            )
            return ScrapeResult.fail(
                str(exc),
                retry_count=website_result.retry_count,
                response_time_ms=elapsed_ms(started),
            )
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "extraction_failed",
                exc_info=True,
                url=url,
                job_type=job_type.value,
                error=str(exc),
            )
            return ScrapeResult.fail(
                f"Extraction failed: {exc}",
                retry_count=website_result.retry_count,
                response_time_ms=elapsed_ms(started),
            )

        return ScrapeResult(
            success=True,
            data=record,
            retry_count=website_result.retry_count,
            response_time_ms=elapsed_ms(started),
            cached=website_result.cached,
        )
