"""
Quality validation for scraping results.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from competitor_watch.domain.scraped_records import (
    JobPostingData,
    PricingData,
    ProductData,
    ScrapeResult,
    WebsiteData,
)
from competitor_watch.domain.scraping_jobs import JobType, ScrapingJob

VALIDITY_THRESHOLD = 0.5
SLOW_RESPONSE_MS = 30_000.0
MIN_CONTENT_LENGTH = 100


@dataclass(frozen=True)
class ValidationReport:
    is_valid: bool
    confidence: float
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _website_confidence(data: Any, warnings: list[str]) -> float:
    if not isinstance(data, WebsiteData):
        return 0.0
    confidence = 1.0
    if not data.title:
        warnings.append("Missing page title")
        confidence *= 0.8
    if not data.description:
        warnings.append("Missing page description")
        confidence *= 0.9
    if len(data.text) < MIN_CONTENT_LENGTH:
        warnings.append("Very little page content")
        confidence *= 0.7
    return confidence


def _pricing_confidence(data: Any, warnings: list[str]) -> float:
    if not isinstance(data, PricingData) or not data.plans:
        return 0.0
    confidence = 1.0
    for plan in data.plans:
        if not plan.name or plan.price is None:
            warnings.append(f"Incomplete pricing plan: {plan.name or 'unnamed'}")
            confidence *= 0.5
    return confidence


def _product_confidence(data: Any, warnings: list[str]) -> float:
    if not isinstance(data, ProductData) or not data.products:
        return 0.0
    confidence = 1.0
    for product in data.products:
        if not product.name:
            warnings.append("Product without a name")
            confidence *= 0.7
    return confidence


def _jobs_confidence(data: Any, warnings: list[str]) -> float:
    if not isinstance(data, JobPostingData):
        return 0.0
    if not data.postings:
        # An empty careers page is plausible, but not evidence of a good scrape.
        return 0.5
    confidence = 1.0
    for posting in data.postings:
        if not posting.title or not posting.description:
            warnings.append(f"Incomplete job posting: {posting.title or 'untitled'}")
            confidence *= 0.8
    return confidence


_CATEGORY_CHECKS: dict[JobType, Callable[[Any, list[str]], float]] = {
    JobType.WEBSITE: _website_confidence,
    JobType.PRICING: _pricing_confidence,
    JobType.PRODUCT: _product_confidence,
    JobType.JOBS: _jobs_confidence,
}


def validate_scraping_result(
    result: ScrapeResult[Any],
    job: ScrapingJob | JobType | str,
) -> ValidationReport:
    """
    Score a scraping result for completeness of the fields its category expects.

    Failed results always score 0. A result is valid when its confidence
    exceeds 0.5.
    """

    job_type = job.job_type if isinstance(job, ScrapingJob) else JobType(job)

    if not result.success:
        return ValidationReport(is_valid=False, confidence=0.0, errors=[result.error or "Scraping failed"])
    if result.data is None:
        return ValidationReport(is_valid=False, confidence=0.0, errors=["No data returned from scraping"])

    warnings: list[str] = []
    confidence = _CATEGORY_CHECKS[job_type](result.data, warnings)

    if result.response_time_ms > SLOW_RESPONSE_MS:
        warnings.append("Slow response time detected")
        confidence *= 0.9
    if result.cached:
        warnings.append("Using cached data")
        confidence *= 0.95

    confidence = max(0.0, min(1.0, confidence))
    errors: list[str] = []
    if confidence <= VALIDITY_THRESHOLD:
        errors.append(f"Confidence {confidence:.2f} does not exceed {VALIDITY_THRESHOLD}")
    return ValidationReport(
        is_valid=not errors,
        confidence=confidence,
        errors=errors,
        warnings=warnings,
    )
