"""
competitor_watch/domain/competitors.py

Competitor descriptor supplied by the competitor-profile collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from competitor_watch.domain.scraping_jobs import JobType

THREAT_LEVELS = ("critical", "high", "medium", "low")


@dataclass(frozen=True)
class CompetitorProfile:
    """
    Tracked competitor.

    ``pages`` optionally pins known URLs per page category; categories not
    listed are discovered by probing common paths on ``domain``.
    """

    id: str
    name: str
    domain: str | None
    threat_level: str = "medium"
    user_id: str | None = None
    monitoring_status: str = "active"
    pages: dict[JobType, str] = field(default_factory=dict)
