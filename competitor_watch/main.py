from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from competitor_watch import __version__
from competitor_watch.config import get_scheduler_settings, get_scraping_settings, load_env_files
from competitor_watch.scheduler import ScrapingScheduler
from competitor_watch.scraping import ScrapingService


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_scheduler() -> ScrapingScheduler:
    """
    Build a scheduler and scraping service from environment settings.
    """

    service = ScrapingService(settings=get_scraping_settings())
    return ScrapingScheduler(service=service, settings=get_scheduler_settings())


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Start periodic dispatch on boot when autostart is enabled; shut it down on exit."""
    log = logging.getLogger(__name__)
    scheduler: ScrapingScheduler = application.state.scheduler
    if scheduler.settings.autostart:
        scheduler.start()
        log.info("Scraping scheduler started")
    else:
        log.info("Scraping scheduler autostart disabled; dispatch on demand only")
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        log.info("Scraping scheduler shut down")


def create_app(scheduler: ScrapingScheduler | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    load_env_files()
    _configure_logging()

    application = FastAPI(
        title="Competitor Watch API",
        version=__version__,
        lifespan=_lifespan,
    )
    application.state.scheduler = scheduler or build_scheduler()

    from competitor_watch.api.routers import scraping_jobs_router

    application.include_router(scraping_jobs_router)

    @application.get("/health")
    def healthcheck() -> dict[str, object]:
        current: ScrapingScheduler = application.state.scheduler
        return {
            "status": "ok",
            "scheduler_running": current.is_running,
            "total_jobs": current.get_metrics().total_jobs,
        }

    return application


app = create_app()
