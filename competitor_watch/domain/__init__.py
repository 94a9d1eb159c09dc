"""
competitor_watch/domain package marker.
"""

from competitor_watch.domain.competitors import THREAT_LEVELS, CompetitorProfile
from competitor_watch.domain.scraped_records import (
    ChangeEvent,
    FetchedPage,
    JobPosting,
    JobPostingData,
    PricingData,
    PricingPlan,
    Product,
    ProductData,
    ScrapeResult,
    WebsiteData,
)
from competitor_watch.domain.scraping_jobs import (
    FrequencyKind,
    JobExecution,
    JobPriority,
    JobStatus,
    JobType,
    QueueMetrics,
    ScrapingFrequency,
    ScrapingJob,
    ScrapingJobConfig,
)

__all__ = [
    "THREAT_LEVELS",
    "ChangeEvent",
    "CompetitorProfile",
    "FetchedPage",
    "FrequencyKind",
    "JobExecution",
    "JobPosting",
    "JobPostingData",
    "JobPriority",
    "JobStatus",
    "JobType",
    "PricingData",
    "PricingPlan",
    "Product",
    "ProductData",
    "QueueMetrics",
    "ScrapeResult",
    "ScrapingFrequency",
    "ScrapingJob",
    "ScrapingJobConfig",
    "WebsiteData",
]
