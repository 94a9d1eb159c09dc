"""
competitor_watch/domain/scraping_jobs.py

Job table records for the scraping scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from competitor_watch.domain.scraped_records import ChangeEvent


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobType(str, Enum):
    """
    Page category a job scrapes. Each member maps to exactly one extractor.
    """

    WEBSITE = "website"
    PRICING = "pricing"
    PRODUCT = "product"
    JOBS = "jobs"


class JobPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    JobPriority.HIGH: 3,
    JobPriority.MEDIUM: 2,
    JobPriority.LOW: 1,
}


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class FrequencyKind(str, Enum):
    INTERVAL = "interval"
    MANUAL = "manual"


@dataclass(frozen=True)
class ScrapingFrequency:
    """
    How often a job becomes due.

    Interval jobs recur every ``minutes``; manual jobs only run when executed
    explicitly and never become due on their own.
    """

    kind: FrequencyKind = FrequencyKind.INTERVAL
    minutes: int = 1440

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", FrequencyKind(self.kind))
        if self.kind is FrequencyKind.INTERVAL:
            if isinstance(self.minutes, bool) or not isinstance(self.minutes, int):
                raise ValueError("Interval frequency minutes must be an integer.")
            if self.minutes <= 0:
                raise ValueError("Interval frequency minutes must be positive.")

    @classmethod
    def every(cls, minutes: int) -> "ScrapingFrequency":
        return cls(kind=FrequencyKind.INTERVAL, minutes=minutes)

    @classmethod
    def manual(cls) -> "ScrapingFrequency":
        return cls(kind=FrequencyKind.MANUAL, minutes=0)


@dataclass(frozen=True)
class ScrapingJobConfig:
    """
    Per-job behaviour flags.
    """

    enable_change_detection: bool = True
    change_threshold: float = 0.1
    notify_on_change: bool = True
    store_history: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.change_threshold <= 1.0:
            raise ValueError("change_threshold must be between 0 and 1.")


@dataclass
class ScrapingJob:
    """
    One recurring scrape task for a URL/category pair.

    Mutated in place by the scheduler under its table lock only.
    """

    id: str
    competitor_id: str
    user_id: str
    job_type: JobType
    url: str
    priority: JobPriority
    frequency: ScrapingFrequency
    next_run_at: datetime | None
    max_retries: int
    config: ScrapingJobConfig = field(default_factory=ScrapingJobConfig)
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0
    last_run_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or utcnow()

    def is_due(self, now: datetime) -> bool:
        return (
            self.status is JobStatus.PENDING
            and self.next_run_at is not None
            and self.next_run_at <= now
        )


@dataclass(frozen=True)
class JobExecution:
    """
    History entry for one finished run of a job.
    """

    job_id: str
    success: bool
    retry_count: int
    response_time_ms: float
    cached: bool
    data: Any = None
    error: str | None = None
    confidence: float = 0.0
    changes: list[ChangeEvent] = field(default_factory=list)
    completed_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class QueueMetrics:
    """
    Job counts by status plus execution statistics.

    ``by_status`` has an entry for every status and sums to ``total_jobs``.
    """

    total_jobs: int
    by_status: dict[str, int]
    success_rate: float
    average_response_time_ms: float
    total_executions: int
