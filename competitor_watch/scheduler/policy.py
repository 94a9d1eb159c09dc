"""
competitor_watch/scheduler/policy.py

Scheduling rules: priority, frequency, retry backoff and the job status
transition table.

Every status change the scheduler makes goes through ``transition``; the
table below is the whole job lifecycle:

    pending   --dispatch-->   running
    failed    --dispatch-->   running      (explicit execution only)
    completed --dispatch-->   running      (explicit execution only)
    running   --succeed-->    pending      (rescheduled)
    running   --complete-->   completed    (manual frequency)
    running   --retry-->      pending      (backoff applied)
    running   --exhaust-->    failed
    running   --cancel-->     cancelled    (removed when the run finishes)
    cancelled --succeed/complete/retry/exhaust--> removed
    pending|paused|failed|completed --cancel--> removed
    pending   --pause-->      paused
    paused    --resume-->     pending
    failed    --reenable-->   pending
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from competitor_watch.domain.scraping_jobs import (
    FrequencyKind,
    JobPriority,
    JobStatus,
    JobType,
    ScrapingFrequency,
)
from competitor_watch.errors import InvalidTransitionError

PRIORITY_BY_JOB_TYPE: dict[JobType, JobPriority] = {
    JobType.PRICING: JobPriority.HIGH,
    JobType.WEBSITE: JobPriority.MEDIUM,
    JobType.PRODUCT: JobPriority.MEDIUM,
    JobType.JOBS: JobPriority.LOW,
}

INTERVAL_MINUTES_BY_THREAT_LEVEL: dict[str, int] = {
    "critical": 60,
    "high": 240,
    "medium": 720,
    "low": 1440,
}
DEFAULT_THREAT_LEVEL = "low"
JOBS_PAGE_INTERVAL_MULTIPLIER = 2


class JobEvent(str, Enum):
    DISPATCH = "dispatch"
    SUCCEED = "succeed"
    COMPLETE = "complete"
    RETRY = "retry"
    EXHAUST = "exhaust"
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    REENABLE = "reenable"


# None as a target means the job leaves the table.
TRANSITIONS: dict[tuple[JobStatus, JobEvent], JobStatus | None] = {
    (JobStatus.PENDING, JobEvent.DISPATCH): JobStatus.RUNNING,
    (JobStatus.FAILED, JobEvent.DISPATCH): JobStatus.RUNNING,
    (JobStatus.COMPLETED, JobEvent.DISPATCH): JobStatus.RUNNING,
    (JobStatus.RUNNING, JobEvent.SUCCEED): JobStatus.PENDING,
    (JobStatus.RUNNING, JobEvent.COMPLETE): JobStatus.COMPLETED,
    (JobStatus.RUNNING, JobEvent.RETRY): JobStatus.PENDING,
    (JobStatus.RUNNING, JobEvent.EXHAUST): JobStatus.FAILED,
    (JobStatus.RUNNING, JobEvent.CANCEL): JobStatus.CANCELLED,
    (JobStatus.CANCELLED, JobEvent.SUCCEED): None,
    (JobStatus.CANCELLED, JobEvent.COMPLETE): None,
    (JobStatus.CANCELLED, JobEvent.RETRY): None,
    (JobStatus.CANCELLED, JobEvent.EXHAUST): None,
    (JobStatus.CANCELLED, JobEvent.CANCEL): JobStatus.CANCELLED,
    (JobStatus.PENDING, JobEvent.CANCEL): None,
    (JobStatus.PAUSED, JobEvent.CANCEL): None,
    (JobStatus.FAILED, JobEvent.CANCEL): None,
    (JobStatus.COMPLETED, JobEvent.CANCEL): None,
    (JobStatus.PENDING, JobEvent.PAUSE): JobStatus.PAUSED,
    (JobStatus.PAUSED, JobEvent.RESUME): JobStatus.PENDING,
    (JobStatus.FAILED, JobEvent.REENABLE): JobStatus.PENDING,
}


def transition(job_id: str, status: JobStatus, event: JobEvent) -> JobStatus | None:
    """
    Return the status after `event`, or None when the job is to be removed.

    Raises InvalidTransitionError when `event` is not allowed from `status`.
    """

    key = (status, event)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(job_id, status.value, event.value)
    return TRANSITIONS[key]


def can_transition(status: JobStatus, event: JobEvent) -> bool:
    return (status, event) in TRANSITIONS


def outcome_event(
    *,
    success: bool,
    retry_count: int,
    max_retries: int,
    frequency: ScrapingFrequency,
) -> JobEvent:
    """
    Map a finished run to the event that settles the job's next status.
    """

    if success:
        if frequency.kind is FrequencyKind.MANUAL:
            return JobEvent.COMPLETE
        return JobEvent.SUCCEED
    if retry_count < max_retries:
        return JobEvent.RETRY
    return JobEvent.EXHAUST


def priority_for(job_type: JobType | str) -> JobPriority:
    return PRIORITY_BY_JOB_TYPE.get(JobType(job_type), JobPriority.MEDIUM)


def frequency_for_threat_level(threat_level: str | None) -> ScrapingFrequency:
    """
    Interval for a competitor: the higher the threat, the shorter the interval.
    """

    level = (threat_level or "").strip().lower()
    minutes = INTERVAL_MINUTES_BY_THREAT_LEVEL.get(
        level,
        INTERVAL_MINUTES_BY_THREAT_LEVEL[DEFAULT_THREAT_LEVEL],
    )
    return ScrapingFrequency.every(minutes)


def next_run_after(frequency: ScrapingFrequency, now: datetime) -> datetime | None:
    if frequency.kind is FrequencyKind.MANUAL:
        return None
    return now + timedelta(minutes=frequency.minutes)


def retry_delay(retry_count: int, *, base_seconds: float, max_seconds: float) -> timedelta:
    """
    Exponential backoff: ``base × 2^retry_count``, capped at `max_seconds`.
    """

    seconds = base_seconds * (2 ** max(0, retry_count))
    return timedelta(seconds=min(seconds, max_seconds))
