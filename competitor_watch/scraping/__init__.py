"""
Scraping engine: fetcher, extractors, cache, change detector and service.
"""

from competitor_watch.scraping.cache import ResultCache
from competitor_watch.scraping.change_detection import ChangeDetector
from competitor_watch.scraping.fetcher import ContentFetcher
from competitor_watch.scraping.rate_limiter import DomainRateLimiter
from competitor_watch.scraping.robots import RobotsPolicyManager
from competitor_watch.scraping.service import ScrapingService

__all__ = [
    "ChangeDetector",
    "ContentFetcher",
    "DomainRateLimiter",
    "ResultCache",
    "RobotsPolicyManager",
    "ScrapingService",
]
