"""
Outbound collaborator interfaces for scraped records and alerts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from competitor_watch.domain.scraped_records import ChangeEvent
from competitor_watch.domain.scraping_jobs import JobExecution, ScrapingJob


class RecordStorage(ABC):
    """
    Persistence collaborator for scraped records.
    """

    @abstractmethod
    def store_record(self, job: ScrapingJob, record: Any) -> None:
        """
        Persist one scraped record produced by `job`.
        """

    def discard_job(self, job_id: str) -> None:
        """
        Called when `job_id` is removed from the scheduler. Stores that keep
        records beyond the job's lifetime can ignore it.
        """


class AlertNotifier(ABC):
    """
    Alerting collaborator for change and failure notifications.
    """

    @abstractmethod
    def changes_detected(self, job: ScrapingJob, events: Sequence[ChangeEvent]) -> None:
        """
        Called when a run of `job` produced change events above its threshold.
        """

    @abstractmethod
    def job_failed(self, job: ScrapingJob, execution: JobExecution) -> None:
        """
        Called once when `job` exhausts its retries and becomes failed.
        """
