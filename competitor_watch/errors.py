"""
Exception hierarchy shared by the scraping engine and the scheduler.
"""

from __future__ import annotations


class CompetitorWatchError(Exception):
    """
    Base class for all pipeline errors.
    """


class ScrapingError(CompetitorWatchError):
    """
    Raised inside the scraping engine; converted to a failed result at the
    scraping service boundary.
    """

    retry_count: int = 0


class NetworkError(ScrapingError):
    """
    Timeout, DNS failure, refused connection or other transport error.
    """

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        self.detail = detail
        super().__init__(f"Network error: {detail}")


class HttpStatusError(ScrapingError):
    """
    The target answered with a non-2xx status.
    """

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RobotsDisallowedError(ScrapingError):
    """
    robots.txt does not allow fetching the URL.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__("Scraping not allowed by robots.txt")


class ParseError(ScrapingError):
    """
    An extractor found no matching structure in the page.
    """


class ResultValidationError(ScrapingError):
    """
    A scrape succeeded but its payload failed quality validation.
    """

    def __init__(self, errors: list[str], confidence: float) -> None:
        self.errors = errors
        self.confidence = confidence
        detail = "; ".join(errors) if errors else "low confidence"
        super().__init__(f"Validation failed (confidence={confidence:.2f}): {detail}")


class SchedulerError(CompetitorWatchError):
    """
    Base class for job table errors.
    """


class JobNotFoundError(SchedulerError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidTransitionError(SchedulerError):
    """
    The requested operation is not allowed from the job's current status.
    """

    def __init__(self, job_id: str, status: str, action: str) -> None:
        self.job_id = job_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} job {job_id} in status '{status}'")
