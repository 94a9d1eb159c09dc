"""
competitor_watch/api/routers package marker.
"""

from competitor_watch.api.routers.scraping_jobs import router as scraping_jobs_router

__all__ = ["scraping_jobs_router"]
