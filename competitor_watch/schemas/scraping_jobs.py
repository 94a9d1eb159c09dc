"""
competitor_watch/schemas/scraping_jobs.py

Request and response schemas for the scraping job endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from competitor_watch.domain.competitors import THREAT_LEVELS
from competitor_watch.domain.scraping_jobs import FrequencyKind, JobType, ScrapingFrequency, ScrapingJobConfig


class FrequencyPayload(BaseModel):
    """
    Job frequency: a positive interval in minutes, or manual.
    """

    kind: FrequencyKind = FrequencyKind.INTERVAL
    minutes: int | None = Field(default=1440, gt=0)

    @model_validator(mode="after")
    def _require_minutes_for_interval(self) -> "FrequencyPayload":
        if self.kind is FrequencyKind.INTERVAL and self.minutes is None:
            raise ValueError("Interval frequency requires minutes.")
        return self

    def to_domain(self) -> ScrapingFrequency:
        if self.kind is FrequencyKind.MANUAL:
            return ScrapingFrequency.manual()
        return ScrapingFrequency.every(int(self.minutes or 0))


class JobConfigPayload(BaseModel):
    enable_change_detection: bool = True
    change_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    notify_on_change: bool = True
    store_history: bool = True

    def to_domain(self) -> ScrapingJobConfig:
        return ScrapingJobConfig(
            enable_change_detection=self.enable_change_detection,
            change_threshold=self.change_threshold,
            notify_on_change=self.notify_on_change,
            store_history=self.store_history,
        )


class ScheduleJobRequest(BaseModel):
    competitor_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    job_type: JobType
    url: str = Field(..., min_length=1)
    frequency: FrequencyPayload = Field(default_factory=FrequencyPayload)
    config: JobConfigPayload | None = None
    max_retries: int | None = Field(default=None, ge=0)


class ScheduleJobResponse(BaseModel):
    job_id: str


class CompetitorScrapingRequest(BaseModel):
    """
    Competitor descriptor for fanning out one job per page category.
    """

    user_id: str = Field(..., min_length=1)
    name: str = ""
    domain: str | None = None
    threat_level: str = "medium"
    monitoring_status: Literal["active", "paused"] = "active"
    pages: dict[JobType, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _normalize_threat_level(self) -> "CompetitorScrapingRequest":
        level = self.threat_level.strip().lower()
        if level not in THREAT_LEVELS:
            raise ValueError(f"threat_level must be one of {list(THREAT_LEVELS)}.")
        self.threat_level = level
        return self


class CompetitorScrapingResponse(BaseModel):
    competitor_id: str
    job_ids: list[str]


class JobResponse(BaseModel):
    id: str
    competitor_id: str
    user_id: str
    job_type: JobType
    url: str
    priority: str
    status: str
    frequency: FrequencyPayload
    next_run_at: datetime | None
    last_run_at: datetime | None
    retry_count: int = Field(..., ge=0)
    max_retries: int = Field(..., ge=0)
    config: JobConfigPayload
    created_at: datetime
    updated_at: datetime


class ChangeEventResponse(BaseModel):
    change_type: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    description: str
    old_value: str | None = None
    new_value: str | None = None
    detected_at: datetime


class JobExecutionResponse(BaseModel):
    job_id: str
    success: bool
    retry_count: int
    response_time_ms: float
    cached: bool
    confidence: float
    error: str | None = None
    data: dict[str, Any] | None = None
    changes: list[ChangeEventResponse] = Field(default_factory=list)
    completed_at: datetime


class ExecutionStatsResponse(BaseModel):
    total_executions: int = Field(..., ge=0)
    successful_executions: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0.0, le=1.0)
    average_response_time_ms: float = Field(..., ge=0.0)
    last_execution_at: datetime | None = None


class JobDetailResponse(BaseModel):
    job: JobResponse
    history: list[JobExecutionResponse]
    stats: ExecutionStatsResponse


class JobActionRequest(BaseModel):
    action: Literal["pause", "resume", "cancel", "execute", "reenable"]


class JobActionResponse(BaseModel):
    job_id: str
    action: str
    status: str
    execution: JobExecutionResponse | None = None


class QueueMetricsResponse(BaseModel):
    total_jobs: int = Field(..., ge=0)
    by_status: dict[str, int]
    success_rate: float = Field(..., ge=0.0, le=1.0)
    average_response_time_ms: float = Field(..., ge=0.0)
    total_executions: int = Field(..., ge=0)
