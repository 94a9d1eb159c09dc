"""
In-process collaborator implementations.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Sequence
from typing import Any

from competitor_watch.domain.scraped_records import ChangeEvent
from competitor_watch.domain.scraping_jobs import JobExecution, ScrapingJob
from competitor_watch.scraping.logging_utils import log_event
from competitor_watch.scraping.storage.base import AlertNotifier, RecordStorage

logger = logging.getLogger(__name__)


class InMemoryRecordStorage(RecordStorage):
    """
    Keeps the latest scraped records per job id; for tests and single-process runs.

    At most ``max_records_per_job`` records are kept per job, and a job's
    records are dropped when the scheduler removes the job.
    """

    def __init__(self, *, max_records_per_job: int = 100) -> None:
        if max_records_per_job < 1:
            raise ValueError("max_records_per_job must be at least 1.")
        self._max_records_per_job = max_records_per_job
        self._records: dict[str, deque[Any]] = {}
        self._lock = threading.Lock()

    def store_record(self, job: ScrapingJob, record: Any) -> None:
        with self._lock:
            records = self._records.get(job.id)
            if records is None:
                records = deque(maxlen=self._max_records_per_job)
                self._records[job.id] = records
            records.append(record)

    def discard_job(self, job_id: str) -> None:
        with self._lock:
            self._records.pop(job_id, None)

    def records_for(self, job_id: str) -> list[Any]:
        with self._lock:
            return list(self._records.get(job_id, []))


class LoggingAlertNotifier(AlertNotifier):
    """
    Writes alerts to the log instead of delivering them.
    """

    def changes_detected(self, job: ScrapingJob, events: Sequence[ChangeEvent]) -> None:
        for event in events:
            log_event(
                logger,
                logging.INFO,
                "change_detected",
                job_id=job.id,
                competitor_id=job.competitor_id,
                url=job.url,
                change_type=event.change_type,
                confidence=round(event.confidence, 3),
                description=event.description,
            )

    def job_failed(self, job: ScrapingJob, execution: JobExecution) -> None:
        log_event(
            logger,
            logging.ERROR,
            "job_failed_permanently",
            job_id=job.id,
            competitor_id=job.competitor_id,
            url=job.url,
            retry_count=job.retry_count,
            error=execution.error,
        )
