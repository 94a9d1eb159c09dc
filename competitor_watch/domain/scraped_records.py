"""
competitor_watch/domain/scraped_records.py

Structured payloads produced by the content extractors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FetchedPage:
    """
    Raw HTTP response body plus fetch metadata.
    """

    url: str
    final_url: str
    status_code: int
    text: str
    response_time_ms: float
    retry_count: int = 0
    fetched_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class WebsiteData:
    url: str
    title: str | None
    description: str | None
    content: str
    text: str
    metadata: dict[str, Any]
    scraped_at: datetime
    response_time_ms: float
    status_code: int

    def snapshot_text(self) -> str:
        return self.text


@dataclass(frozen=True)
class PricingPlan:
    name: str
    price: float | None
    interval: str
    is_popular: bool
    features: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PricingData:
    url: str
    plans: list[PricingPlan]
    currency: str
    scraped_at: datetime
    response_time_ms: float
    status_code: int

    def snapshot_text(self) -> str:
        lines = []
        for plan in self.plans:
            price = "n/a" if plan.price is None else f"{plan.price:.2f}"
            lines.append(f"{plan.name} {self.currency} {price} {plan.interval} " + " ".join(plan.features))
        return "\n".join(lines)


@dataclass(frozen=True)
class Product:
    name: str
    description: str | None
    features: list[str] = field(default_factory=list)
    status: str = "active"


@dataclass(frozen=True)
class ProductData:
    url: str
    products: list[Product]
    categories: list[str]
    scraped_at: datetime
    response_time_ms: float
    status_code: int

    def snapshot_text(self) -> str:
        return "\n".join(
            f"{product.name} {product.status} {product.description or ''} " + " ".join(product.features)
            for product in self.products
        )


@dataclass(frozen=True)
class JobPosting:
    title: str
    location: str | None
    department: str | None
    description: str
    remote: bool
    employment_type: str
    strategic_importance: str
    url: str


@dataclass(frozen=True)
class JobPostingData:
    url: str
    postings: list[JobPosting]
    scraped_at: datetime
    response_time_ms: float
    status_code: int

    def snapshot_text(self) -> str:
        return "\n".join(
            f"{posting.title} {posting.department or ''} {posting.location or ''}"
            for posting in self.postings
        )


@dataclass(frozen=True)
class ChangeEvent:
    """
    One classified difference between two content snapshots.
    """

    change_type: str
    confidence: float
    description: str
    old_value: str | None = None
    new_value: str | None = None
    detected_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ScrapeResult(Generic[T]):
    """
    Uniform envelope returned by every scraping service operation.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    retry_count: int = 0
    response_time_ms: float = 0.0
    cached: bool = False

    @classmethod
    def ok(cls, data: T, *, retry_count: int = 0, response_time_ms: float = 0.0) -> "ScrapeResult[T]":
        return cls(success=True, data=data, retry_count=retry_count, response_time_ms=response_time_ms)

    @classmethod
    def fail(cls, error: str, *, retry_count: int = 0, response_time_ms: float = 0.0) -> "ScrapeResult[T]":
        return cls(success=False, error=error, retry_count=retry_count, response_time_ms=response_time_ms)
