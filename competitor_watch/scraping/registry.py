"""
Job type to extractor table.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from competitor_watch.domain.scraped_records import WebsiteData
from competitor_watch.domain.scraping_jobs import JobType
from competitor_watch.scraping.parsing import HTMLParsingLayer

Extractor = Callable[[WebsiteData], Any]


def _website_identity(website: WebsiteData) -> WebsiteData:
    return website


def _build_extractors() -> Mapping[JobType, Extractor]:
    table: dict[JobType, Extractor] = {
        JobType.WEBSITE: _website_identity,
        JobType.PRICING: lambda website: HTMLParsingLayer.extract_pricing(website=website),
        JobType.PRODUCT: lambda website: HTMLParsingLayer.extract_products(website=website),
        JobType.JOBS: lambda website: HTMLParsingLayer.extract_job_postings(website=website),
    }
    missing = set(JobType) - set(table)
    if missing:
        names = ", ".join(sorted(job_type.value for job_type in missing))
        raise RuntimeError(f"No extractor registered for job types: {names}")
    return MappingProxyType(table)


EXTRACTORS: Mapping[JobType, Extractor] = _build_extractors()


def extractor_for(job_type: JobType | str) -> Extractor:
    """
    Return the extractor turning a fetched website record into the category record.
    """

    return EXTRACTORS[JobType(job_type)]
