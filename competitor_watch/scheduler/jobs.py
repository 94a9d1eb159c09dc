"""
competitor_watch/scheduler/jobs.py

Priority job scheduler for competitor scraping.

Job table
---------
Jobs live in an in-memory table guarded by one re-entrant lock. Every status
change goes through the transition table in ``policy.py``, so a job is never
observed in two states and no transition is lost between a worker finishing
and a control operation (pause, cancel, ...) arriving.

Dispatch
--------
``dispatch_due_jobs`` selects due pending jobs, highest priority first and
earliest ``next_run_at`` within a priority, marks them running while holding
the lock, and hands them to a bounded worker pool. At most
``max_concurrent_jobs`` jobs are running at any time. ``start()`` installs an
APScheduler interval trigger that calls ``dispatch_due_jobs`` periodically.
Each dispatch also purges expired entries from the service's result cache.

Retries bypass the result cache so a failed run is never answered with the
page it just failed on. Only the last ``history_limit`` executions of a job
are kept, and a removed job takes its history, snapshot and stored records
with it.

Outcomes
--------
  success, interval frequency -> pending, rescheduled one interval ahead
  success, manual frequency   -> completed
  failure, retries left       -> pending, retried after exponential backoff
  failure, retries exhausted  -> failed, alert notifier called once
  cancelled while running     -> removed once the run finishes
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler

from competitor_watch.config import SchedulerSettings
from competitor_watch.domain.competitors import CompetitorProfile
from competitor_watch.domain.scraped_records import ChangeEvent, ScrapeResult
from competitor_watch.domain.scraping_jobs import (
    JobExecution,
    JobStatus,
    JobType,
    QueueMetrics,
    ScrapingFrequency,
    ScrapingJob,
    ScrapingJobConfig,
    utcnow,
)
from competitor_watch.errors import (
    InvalidTransitionError,
    JobNotFoundError,
    ResultValidationError,
    SchedulerError,
)
from competitor_watch.scheduler.discovery import PageDiscovery
from competitor_watch.scheduler.policy import (
    JOBS_PAGE_INTERVAL_MULTIPLIER,
    JobEvent,
    frequency_for_threat_level,
    next_run_after,
    outcome_event,
    priority_for,
    retry_delay,
    transition,
)
from competitor_watch.scheduler.validation import ValidationReport, validate_scraping_result
from competitor_watch.scraping.logging_utils import elapsed_ms
from competitor_watch.scraping.service import ScrapingService
from competitor_watch.scraping.storage import (
    AlertNotifier,
    InMemoryRecordStorage,
    LoggingAlertNotifier,
    RecordStorage,
)
from competitor_watch.scraping.urls import is_http_url

logger = logging.getLogger(__name__)

DISPATCH_JOB_ID = "scraping_dispatch"
_CATEGORY_JOB_TYPES = (JobType.PRICING, JobType.PRODUCT, JobType.JOBS)


class ScrapingScheduler:
    """
    Owns the scraping job table and runs due jobs on a worker pool.
    """

    def __init__(
        self,
        *,
        service: ScrapingService,
        settings: SchedulerSettings | None = None,
        storage: RecordStorage | None = None,
        notifier: AlertNotifier | None = None,
        discovery: PageDiscovery | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._service = service
        self._settings = settings or SchedulerSettings()
        self._storage = storage or InMemoryRecordStorage()
        self._notifier = notifier or LoggingAlertNotifier()
        self._discovery = discovery
        self._clock = clock

        self._lock = threading.RLock()
        self._jobs: dict[str, ScrapingJob] = {}
        self._history: dict[str, deque[JobExecution]] = {}
        self._snapshots: dict[str, str] = {}
        self._executor: ThreadPoolExecutor | None = None
        self._background: BackgroundScheduler | None = None
        self._accepting = True

    @property
    def settings(self) -> SchedulerSettings:
        return self._settings

    @property
    def storage(self) -> RecordStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_job(
        self,
        competitor_id: str,
        user_id: str,
        job_type: JobType | str,
        url: str,
        frequency: ScrapingFrequency,
        config: ScrapingJobConfig | None = None,
        max_retries: int | None = None,
    ) -> str:
        """
        Add a pending job and return its id.

        Priority comes from the job type. Interval jobs become due one
        interval from now; manual jobs never become due on their own.
        """

        job_type = JobType(job_type)
        if max_retries is not None and max_retries < 0:
            raise ValueError("max_retries must not be negative.")

        job_id = self._generate_job_id()
        now = self._clock()
        job = ScrapingJob(
            id=job_id,
            competitor_id=str(competitor_id),
            user_id=str(user_id),
            job_type=job_type,
            url=url,
            priority=priority_for(job_type),
            frequency=frequency,
            next_run_at=next_run_after(frequency, now),
            max_retries=self._settings.max_retries if max_retries is None else max_retries,
            config=config or ScrapingJobConfig(change_threshold=self._settings.change_threshold),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if job_id in self._jobs:
                raise SchedulerError(f"Generated job id already exists: {job_id}")
            self._jobs[job_id] = job

        logger.info(
            "Scheduler: scheduled job=%s type=%s priority=%s url=%s next_run_at=%s",
            job_id,
            job_type.value,
            job.priority.value,
            url,
            job.next_run_at.isoformat() if job.next_run_at else "manual",
        )
        return job_id

    def schedule_competitor_jobs(self, competitor: CompetitorProfile, user_id: str) -> list[str]:
        """
        Create one job per page category found for `competitor`.

        The website job always comes first. Category pages come from
        ``competitor.pages`` or, when enabled, from probing common paths. The
        jobs page runs at half the competitor's frequency. Jobs of a paused
        competitor are created paused.
        """

        if not competitor.domain or not competitor.domain.strip():
            logger.warning(
                "Scheduler: competitor=%s has no domain, no jobs scheduled",
                competitor.id,
            )
            return []

        base_url = _base_url(competitor.domain)
        frequency = frequency_for_threat_level(competitor.threat_level)

        pages: dict[JobType, str] = {JobType.WEBSITE: competitor.pages.get(JobType.WEBSITE, base_url)}
        for job_type in _CATEGORY_JOB_TYPES:
            url = competitor.pages.get(job_type)
            if url is None and self._settings.discover_pages:
                url = self._page_discovery().find_page(base_url, job_type)
            if url:
                pages[job_type] = url

        job_ids: list[str] = []
        for job_type, url in pages.items():
            job_frequency = frequency
            if job_type is JobType.JOBS:
                job_frequency = ScrapingFrequency.every(frequency.minutes * JOBS_PAGE_INTERVAL_MULTIPLIER)
            job_id = self.schedule_job(competitor.id, user_id, job_type, url, job_frequency)
            if competitor.monitoring_status == "paused":
                self.pause_job(job_id)
            job_ids.append(job_id)

        logger.info(
            "Scheduler: competitor=%s scheduled %d job(s) every %d minutes",
            competitor.id,
            len(job_ids),
            frequency.minutes,
        )
        return job_ids

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    def pause_job(self, job_id: str) -> bool:
        """
        Pause a pending job. Returns False if the job is unknown or not pending.
        """

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not self._apply(job, JobEvent.PAUSE):
                return False
        logger.info("Scheduler: paused job=%s", job_id)
        return True

    def resume_job(self, job_id: str) -> bool:
        """
        Resume a paused job; its next run is one interval from now.
        """

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not self._apply(job, JobEvent.RESUME):
                return False
            job.next_run_at = next_run_after(job.frequency, self._clock())
        logger.info("Scheduler: resumed job=%s", job_id)
        return True

    def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a job.

        A running job is flagged cancelled and removed when its run finishes;
        any other job is removed immediately.
        """

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            target = transition(job_id, job.status, JobEvent.CANCEL)
            if target is None:
                self._remove(job_id)
                removed = True
            else:
                job.status = target
                job.touch(self._clock())
                removed = False

        if removed:
            self._call_collaborator("discard_job", self._storage.discard_job, job_id)
            logger.info("Scheduler: cancelled and removed job=%s", job_id)
            return True
        logger.info("Scheduler: cancelled running job=%s, removal after in-flight run", job_id)
        return True

    def delete_job(self, job_id: str) -> bool:
        return self.cancel_job(job_id)

    def reenable_job(self, job_id: str) -> bool:
        """
        Move a failed job back to pending with its retry count reset.
        """

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not self._apply(job, JobEvent.REENABLE):
                return False
            job.retry_count = 0
            job.next_run_at = self._clock()
        logger.info("Scheduler: re-enabled job=%s", job_id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> ScrapingJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.copy(job) if job is not None else None

    def get_competitor_jobs(self, competitor_id: str) -> list[ScrapingJob]:
        with self._lock:
            return [
                copy.copy(job)
                for job in self._jobs.values()
                if job.competitor_id == str(competitor_id)
            ]

    def list_jobs(self, user_id: str | None = None) -> list[ScrapingJob]:
        with self._lock:
            return [
                copy.copy(job)
                for job in self._jobs.values()
                if user_id is None or job.user_id == str(user_id)
            ]

    def get_job_history(self, job_id: str) -> list[JobExecution]:
        """
        The latest executions of `job_id`, oldest first; empty for unknown ids.
        """

        with self._lock:
            return list(self._history.get(job_id, []))

    def get_metrics(self) -> QueueMetrics:
        with self._lock:
            by_status = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                by_status[job.status.value] += 1
            total_jobs = len(self._jobs)
            executions = [entry for entries in self._history.values() for entry in entries]

        total_executions = len(executions)
        if total_executions:
            success_rate = sum(1 for entry in executions if entry.success) / total_executions
            average_ms = sum(entry.response_time_ms for entry in executions) / total_executions
        else:
            success_rate = 0.0
            average_ms = 0.0
        return QueueMetrics(
            total_jobs=total_jobs,
            by_status=by_status,
            success_rate=success_rate,
            average_response_time_ms=average_ms,
            total_executions=total_executions,
        )

    def validate_scraping_result(self, result: ScrapeResult[Any], job: ScrapingJob) -> ValidationReport:
        return validate_scraping_result(result, job)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def dispatch_due_jobs(self) -> list[Future[JobExecution]]:
        """
        Start due jobs up to the free worker capacity and return their futures.

        A job is marked running only once the worker pool has accepted it; a
        job the pool rejects stays pending and due.
        """

        purged = self._service.purge_cache()
        if purged:
            logger.debug("Scheduler: purged %d expired cache entries", purged)

        now = self._clock()
        futures: list[Future[JobExecution]] = []
        with self._lock:
            if not self._accepting:
                return []
            busy = sum(
                1
                for job in self._jobs.values()
                if job.status in (JobStatus.RUNNING, JobStatus.CANCELLED)
            )
            capacity = self._settings.max_concurrent_jobs - busy
            if capacity <= 0:
                return []

            due = sorted(
                (job for job in self._jobs.values() if job.is_due(now)),
                key=lambda job: (-job.priority.rank, job.next_run_at),
            )
            selected = due[:capacity]
            if not selected:
                return []

            # Workers block on the lock, so none starts before its job is running.
            executor = self._get_executor()
            for job in selected:
                try:
                    future = executor.submit(self._run_job, job.id)
                except RuntimeError as exc:
                    logger.warning("Scheduler: worker pool rejected job=%s, left pending: %s", job.id, exc)
                    break
                self._begin_run(job, now)
                futures.append(future)

        if futures:
            logger.info(
                "Scheduler: dispatched %d job(s): %s",
                len(futures),
                ", ".join(job.id for job in selected[: len(futures)]),
            )
        return futures

    def run_due_jobs(self, timeout: float | None = None) -> list[JobExecution]:
        """
        Dispatch due jobs and block until they finish.
        """

        futures = self.dispatch_due_jobs()
        wait(futures, timeout=timeout)
        return [future.result() for future in futures if future.done()]

    def execute_job(self, job_id: str) -> JobExecution:
        """
        Run one job now in the calling thread, regardless of its next run time.

        Pending, failed and completed jobs can be executed; anything else
        raises InvalidTransitionError.
        """

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            self._begin_run(job, self._clock())
        return self._run_job(job_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start periodic dispatch on a background APScheduler thread.
        """

        with self._lock:
            if self._background is not None and self._background.running:
                return
            self._accepting = True
            background = BackgroundScheduler(timezone="UTC")
            background.add_job(
                self.dispatch_due_jobs,
                trigger="interval",
                seconds=self._settings.dispatch_interval_seconds,
                id=DISPATCH_JOB_ID,
                name="Dispatch due scraping jobs",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                next_run_time=datetime.now(timezone.utc),
            )
            background.start()
            self._background = background
        logger.info(
            "Scheduler: started, dispatch every %.0fs, max %d concurrent job(s)",
            self._settings.dispatch_interval_seconds,
            self._settings.max_concurrent_jobs,
        )

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop dispatching and wait for in-flight jobs when `wait` is set.
        """

        with self._lock:
            self._accepting = False
            background, self._background = self._background, None
            executor, self._executor = self._executor, None

        if background is not None and background.running:
            background.shutdown(wait=wait)
        if executor is not None:
            executor.shutdown(wait=wait)
        logger.info("Scheduler: shut down")

    @property
    def is_running(self) -> bool:
        background = self._background
        return background is not None and background.running

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _generate_job_id(self) -> str:
        return f"job_{uuid.uuid4().hex}"

    def _page_discovery(self) -> PageDiscovery:
        if self._discovery is None:
            self._discovery = PageDiscovery(fetcher=self._service.fetcher)
        return self._discovery

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._settings.max_concurrent_jobs,
                    thread_name_prefix="scrape-worker",
                )
            return self._executor

    def _apply(self, job: ScrapingJob, event: JobEvent) -> bool:
        try:
            target = transition(job.id, job.status, event)
        except InvalidTransitionError as exc:
            logger.info("Scheduler: %s", exc)
            return False
        if target is None:
            self._remove(job.id)
        else:
            job.status = target
            job.touch(self._clock())
        return True

    def _begin_run(self, job: ScrapingJob, now: datetime) -> None:
        job.status = transition(job.id, job.status, JobEvent.DISPATCH) or JobStatus.RUNNING
        job.last_run_at = now
        job.touch(now)

    def _remove(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._history.pop(job_id, None)
        self._snapshots.pop(job_id, None)

    def _run_job(self, job_id: str) -> JobExecution:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            job_type = job.job_type
            url = job.url
            config = job.config
            retry_count = job.retry_count

        started = time.monotonic()
        result: ScrapeResult[Any] | None = None
        changes: list[ChangeEvent] = []
        confidence = 0.0
        try:
            result = self._service.scrape(job_type, url, use_cache=retry_count == 0)
            report = validate_scraping_result(result, job_type)
            confidence = report.confidence
            success = report.is_valid
            error = None
            if not success:
                error = result.error or str(ResultValidationError(report.errors, report.confidence))
            if success and config.enable_change_detection:
                changes = self._detect_changes(job_id, result.data, config.change_threshold)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scheduler: job=%s raised during execution: %s", job_id, exc, exc_info=True)
            success = False
            error = f"Execution failed: {exc}"

        execution = JobExecution(
            job_id=job_id,
            success=success,
            retry_count=retry_count,
            response_time_ms=result.response_time_ms if result is not None else elapsed_ms(started),
            cached=result.cached if result is not None else False,
            data=result.data if success and result is not None else None,
            error=error,
            confidence=confidence,
            changes=changes,
            completed_at=self._clock(),
        )
        settled = self._settle(job_id, execution)
        if settled is not None:
            self._notify(settled, execution)
        return execution

    def _settle(self, job_id: str, execution: JobExecution) -> ScrapingJob | None:
        """
        Apply the run outcome to the job. Returns a copy of the updated job,
        or None when the job was cancelled during the run and is now removed.
        """

        now = self._clock()
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            event = outcome_event(
                success=execution.success,
                retry_count=job.retry_count,
                max_retries=job.max_retries,
                frequency=job.frequency,
            )
            target = transition(job_id, job.status, event)
            if target is None:
                self._remove(job_id)
                removed = True
            else:
                removed = False
                history = self._history.get(job_id)
                if history is None:
                    history = deque(maxlen=self._settings.history_limit)
                    self._history[job_id] = history
                history.append(execution)
                self._apply_outcome(job, target, event, now)
                settled = copy.copy(job)

        if removed:
            self._call_collaborator("discard_job", self._storage.discard_job, job_id)
            logger.info("Scheduler: removed cancelled job=%s after in-flight run", job_id)
            return None
        self._log_outcome(settled, execution, event)
        return settled

    def _apply_outcome(self, job: ScrapingJob, target: JobStatus, event: JobEvent, now: datetime) -> None:
        job.status = target
        if event is JobEvent.SUCCEED:
            job.retry_count = 0
            job.next_run_at = next_run_after(job.frequency, now)
        elif event is JobEvent.COMPLETE:
            job.retry_count = 0
            job.next_run_at = None
        elif event is JobEvent.RETRY:
            job.retry_count += 1
            job.next_run_at = now + retry_delay(
                job.retry_count,
                base_seconds=self._settings.retry_base_delay_seconds,
                max_seconds=self._settings.retry_max_delay_seconds,
            )
        else:
            job.next_run_at = None
        job.touch(now)

    @staticmethod
    def _log_outcome(job: ScrapingJob, execution: JobExecution, event: JobEvent) -> None:
        if execution.success:
            logger.info(
                "Scheduler: job=%s succeeded confidence=%.2f changes=%d next_run_at=%s",
                job.id,
                execution.confidence,
                len(execution.changes),
                job.next_run_at.isoformat() if job.next_run_at else "none",
            )
        elif event is JobEvent.RETRY:
            logger.warning(
                "Scheduler: job=%s failed (%s), retry %d/%d at %s",
                job.id,
                execution.error,
                job.retry_count,
                job.max_retries,
                job.next_run_at.isoformat() if job.next_run_at else "none",
            )
        else:
            logger.error("Scheduler: job=%s failed permanently: %s", job.id, execution.error)

    def _detect_changes(self, job_id: str, record: Any, threshold: float) -> list[ChangeEvent]:
        current = record.snapshot_text()
        with self._lock:
            previous = self._snapshots.get(job_id)
            self._snapshots[job_id] = current
        if previous is None:
            return []
        return self._service.change_detector.compare(previous, current, threshold=threshold)

    def _notify(self, job: ScrapingJob, execution: JobExecution) -> None:
        if execution.success:
            if job.config.store_history:
                self._call_collaborator("store_record", self._storage.store_record, job, execution.data)
            if execution.changes and job.config.notify_on_change:
                self._call_collaborator(
                    "changes_detected",
                    self._notifier.changes_detected,
                    job,
                    execution.changes,
                )
        elif job.status is JobStatus.FAILED:
            self._call_collaborator("job_failed", self._notifier.job_failed, job, execution)

    @staticmethod
    def _call_collaborator(name: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scheduler: collaborator %s failed: %s", name, exc)


def _base_url(domain: str) -> str:
    candidate = domain.strip().rstrip("/")
    if is_http_url(candidate):
        return candidate
    return f"https://{candidate}"

