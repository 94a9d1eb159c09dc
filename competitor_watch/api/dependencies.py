"""
competitor_watch/api/dependencies.py

Shared FastAPI dependencies.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from competitor_watch.scheduler import ScrapingScheduler


def get_scheduler(request: Request) -> ScrapingScheduler:
    """
    Return the scheduler attached to the application on startup.
    """

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scraping scheduler is not initialised.",
        )
    return scheduler
