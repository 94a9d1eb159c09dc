"""
competitor_watch/api/routers/scraping_jobs.py

Scraping job scheduling and control endpoints.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status

from competitor_watch.api.dependencies import get_scheduler
from competitor_watch.domain.competitors import CompetitorProfile
from competitor_watch.domain.scraping_jobs import FrequencyKind, JobExecution, ScrapingJob
from competitor_watch.errors import InvalidTransitionError, JobNotFoundError
from competitor_watch.scheduler import ScrapingScheduler
from competitor_watch.schemas.scraping_jobs import (
    ChangeEventResponse,
    CompetitorScrapingRequest,
    CompetitorScrapingResponse,
    ExecutionStatsResponse,
    FrequencyPayload,
    JobActionRequest,
    JobActionResponse,
    JobConfigPayload,
    JobDetailResponse,
    JobExecutionResponse,
    JobResponse,
    QueueMetricsResponse,
    ScheduleJobRequest,
    ScheduleJobResponse,
)

router = APIRouter(tags=["scraping-jobs"])


@router.post(
    "/scraping/jobs",
    response_model=ScheduleJobResponse,
    status_code=status.HTTP_201_CREATED,
)
def schedule_job(
    payload: ScheduleJobRequest,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> ScheduleJobResponse:
    """
    Schedule one scraping job.
    """

    try:
        job_id = scheduler.schedule_job(
            payload.competitor_id,
            payload.user_id,
            payload.job_type,
            payload.url,
            payload.frequency.to_domain(),
            config=payload.config.to_domain() if payload.config else None,
            max_retries=payload.max_retries,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ScheduleJobResponse(job_id=job_id)


@router.post(
    "/competitors/{competitor_id}/scraping",
    response_model=CompetitorScrapingResponse,
    status_code=status.HTTP_201_CREATED,
)
def schedule_competitor(
    competitor_id: str,
    payload: CompetitorScrapingRequest,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> CompetitorScrapingResponse:
    """
    Schedule one job per page category found for a competitor.
    """

    competitor = CompetitorProfile(
        id=competitor_id,
        name=payload.name or competitor_id,
        domain=payload.domain,
        threat_level=payload.threat_level,
        user_id=payload.user_id,
        monitoring_status=payload.monitoring_status,
        pages=dict(payload.pages),
    )
    job_ids = scheduler.schedule_competitor_jobs(competitor, payload.user_id)
    return CompetitorScrapingResponse(competitor_id=competitor_id, job_ids=job_ids)


@router.get("/competitors/{competitor_id}/scraping/jobs", response_model=list[JobResponse])
def list_competitor_jobs(
    competitor_id: str,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> list[JobResponse]:
    return [_job_response(job) for job in scheduler.get_competitor_jobs(competitor_id)]


@router.get("/scraping/jobs/{job_id}", response_model=JobDetailResponse)
def get_job(
    job_id: str,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> JobDetailResponse:
    """
    Return a job with its execution history and statistics.
    """

    job = scheduler.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job not found: {job_id}",
        )
    history = scheduler.get_job_history(job_id)
    return JobDetailResponse(
        job=_job_response(job),
        history=[_execution_response(entry) for entry in history],
        stats=_execution_stats(history),
    )


@router.put("/scraping/jobs/{job_id}", response_model=JobActionResponse)
def control_job(
    job_id: str,
    payload: JobActionRequest,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> JobActionResponse:
    """
    Apply a control action: pause, resume, cancel, execute or reenable.
    """

    job = scheduler.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job not found: {job_id}",
        )

    execution: JobExecution | None = None
    if payload.action == "execute":
        try:
            execution = scheduler.execute_job(job_id)
        except JobNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    else:
        operations = {
            "pause": scheduler.pause_job,
            "resume": scheduler.resume_job,
            "cancel": scheduler.cancel_job,
            "reenable": scheduler.reenable_job,
        }
        if not operations[payload.action](job_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot {payload.action} job {job_id} in status '{job.status.value}'",
            )

    updated = scheduler.get_job(job_id)
    return JobActionResponse(
        job_id=job_id,
        action=payload.action,
        status=updated.status.value if updated is not None else "removed",
        execution=_execution_response(execution) if execution is not None else None,
    )


@router.delete("/scraping/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(
    job_id: str,
    scheduler: ScrapingScheduler = Depends(get_scheduler),
) -> Response:
    if not scheduler.delete_job(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job not found: {job_id}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/scraping/metrics", response_model=QueueMetricsResponse)
def get_metrics(scheduler: ScrapingScheduler = Depends(get_scheduler)) -> QueueMetricsResponse:
    metrics = scheduler.get_metrics()
    return QueueMetricsResponse(
        total_jobs=metrics.total_jobs,
        by_status=metrics.by_status,
        success_rate=metrics.success_rate,
        average_response_time_ms=metrics.average_response_time_ms,
        total_executions=metrics.total_executions,
    )


def _job_response(job: ScrapingJob) -> JobResponse:
    if job.frequency.kind is FrequencyKind.MANUAL:
        frequency = FrequencyPayload(kind=FrequencyKind.MANUAL, minutes=None)
    else:
        frequency = FrequencyPayload(kind=FrequencyKind.INTERVAL, minutes=job.frequency.minutes)
    return JobResponse(
        id=job.id,
        competitor_id=job.competitor_id,
        user_id=job.user_id,
        job_type=job.job_type,
        url=job.url,
        priority=job.priority.value,
        status=job.status.value,
        frequency=frequency,
        next_run_at=job.next_run_at,
        last_run_at=job.last_run_at,
        retry_count=job.retry_count,
        max_retries=job.max_retries,
        config=JobConfigPayload(
            enable_change_detection=job.config.enable_change_detection,
            change_threshold=job.config.change_threshold,
            notify_on_change=job.config.notify_on_change,
            store_history=job.config.store_history,
        ),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _execution_response(execution: JobExecution) -> JobExecutionResponse:
    return JobExecutionResponse(
        job_id=execution.job_id,
        success=execution.success,
        retry_count=execution.retry_count,
        response_time_ms=execution.response_time_ms,
        cached=execution.cached,
        confidence=execution.confidence,
        error=execution.error,
        data=_record_payload(execution.data),
        changes=[
            ChangeEventResponse(
                change_type=event.change_type,
                confidence=event.confidence,
                description=event.description,
                old_value=event.old_value,
                new_value=event.new_value,
                detected_at=event.detected_at,
            )
            for event in execution.changes
        ],
        completed_at=execution.completed_at,
    )


def _execution_stats(history: list[JobExecution]) -> ExecutionStatsResponse:
    total = len(history)
    successes = sum(1 for entry in history if entry.success)
    return ExecutionStatsResponse(
        total_executions=total,
        successful_executions=successes,
        success_rate=successes / total if total else 0.0,
        average_response_time_ms=(
            sum(entry.response_time_ms for entry in history) / total if total else 0.0
        ),
        last_execution_at=history[-1].completed_at if history else None,
    )


def _record_payload(record: Any) -> dict[str, Any] | None:
    if record is None:
        return None
    if is_dataclass(record) and not isinstance(record, type):
        return asdict(record)
    if isinstance(record, dict):
        return record
    return {"value": record}
