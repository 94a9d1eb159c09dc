"""
Scraping job scheduler exports.
"""

from competitor_watch.scheduler.discovery import PageDiscovery
from competitor_watch.scheduler.jobs import ScrapingScheduler
from competitor_watch.scheduler.validation import ValidationReport, validate_scraping_result

__all__ = ["PageDiscovery", "ScrapingScheduler", "ValidationReport", "validate_scraping_result"]
