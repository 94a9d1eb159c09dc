"""
BeautifulSoup-based extractors for competitor pages.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from competitor_watch.domain.scraped_records import (
    FetchedPage,
    JobPosting,
    JobPostingData,
    PricingData,
    PricingPlan,
    Product,
    ProductData,
    WebsiteData,
)
from competitor_watch.errors import ParseError

logger = logging.getLogger(__name__)

PRICE_REGEX = re.compile(
    r"(?P<currency>USD|US\$|\$|EUR|€|GBP|£)\s?(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)",
    flags=re.IGNORECASE,
)
BARE_AMOUNT_REGEX = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?")
FREE_REGEX = re.compile(r"\bfree\b", flags=re.IGNORECASE)
CURRENCY_CODES = {"$": "USD", "us$": "USD", "usd": "USD", "€": "EUR", "eur": "EUR", "£": "GBP", "gbp": "GBP"}

PRICING_SELECTORS = [
    ".pricing-card",
    ".plan-card",
    ".price-card",
    ".pricing-plan",
    ".pricing-table [class*='plan']",
    "[class*='pricing-tier']",
    "[data-pricing-plan]",
]
PRODUCT_SELECTORS = [
    ".product-card",
    ".product",
    ".feature-card",
    ".platform-module",
    ".solutions-grid article",
    "[class*='product-item']",
    "[data-product]",
]
JOB_SELECTORS = [
    ".job-posting",
    ".job-card",
    ".job",
    ".position",
    ".opening",
    ".career-item",
    "[class*='job-item']",
    "[data-job]",
]
POPULAR_CLASS_HINTS = ("popular", "featured", "recommended", "highlight")
POPULAR_TEXT_HINTS = ("most popular", "recommended", "best value")
REMOTE_HINTS = ("remote", "work from home", "distributed", "anywhere")
TECHNICAL_DEPARTMENT_HINTS = (
    "engineering",
    "technical",
    "technology",
    "product",
    "data",
    "research",
    "sales",
)
NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]
MAX_ITEMS = 300


class HTMLParsingLayer:
    """
    Deterministic extractors, one per page category.
    """

    @classmethod
    def extract_website(cls, *, page: FetchedPage) -> WebsiteData:
        soup = BeautifulSoup(page.text, "html.parser")
        metadata = cls._extract_metadata(soup)
        title = None
        if soup.title is not None and soup.title.string:
            title = cls._clean_text(soup.title.string) or None
        if title is None:
            title = metadata.get("og:title") or None

        description = metadata.get("description") or metadata.get("og:description") or None

        return WebsiteData(
            url=page.url,
            title=title,
            description=description,
            content=page.text,
            text=cls.visible_text_from_soup(soup),
            metadata=metadata,
            scraped_at=page.fetched_at,
            response_time_ms=page.response_time_ms,
            status_code=page.status_code,
        )

    @classmethod
    def extract_pricing(cls, *, website: WebsiteData) -> PricingData:
        soup = BeautifulSoup(website.content, "html.parser")
        plans: list[PricingPlan] = []
        for node in cls._select_outermost(soup=soup, selectors=PRICING_SELECTORS):
            plan = cls._parse_plan(node)
            if plan is not None:
                plans.append(plan)

        plans = cls._dedupe(plans)
        if not plans:
            raise ParseError("No pricing data found")

        return PricingData(
            url=website.url,
            plans=plans,
            currency=cls._detect_currency(website.text),
            scraped_at=website.scraped_at,
            response_time_ms=website.response_time_ms,
            status_code=website.status_code,
        )

    @classmethod
    def extract_products(cls, *, website: WebsiteData) -> ProductData:
        soup = BeautifulSoup(website.content, "html.parser")
        products: list[Product] = []
        categories: list[str] = []
        for node in cls._select_outermost(soup=soup, selectors=PRODUCT_SELECTORS):
            text = cls._clean_text(node.get_text(" ", strip=True))
            if not text:
                continue
            name = cls._extract_heading(node)
            paragraph = node.find("p")
            description = cls._clean_text(paragraph.get_text(" ", strip=True)) if paragraph else None
            products.append(
                Product(
                    name=name or "",
                    description=description or None,
                    features=cls._extract_list_items(node),
                    status=cls._detect_product_status(text),
                )
            )
            category = node.get("data-category")
            category_node = node.select_one("[class*='category']")
            if not category and category_node is not None:
                category = category_node.get_text(" ", strip=True)
            if isinstance(category, str) and category.strip() and category.strip() not in categories:
                categories.append(category.strip())

        products = cls._dedupe(products)
        if not products:
            raise ParseError("No product data found")

        return ProductData(
            url=website.url,
            products=products,
            categories=categories,
            scraped_at=website.scraped_at,
            response_time_ms=website.response_time_ms,
            status_code=website.status_code,
        )

    @classmethod
    def extract_job_postings(cls, *, website: WebsiteData) -> JobPostingData:
        soup = BeautifulSoup(website.content, "html.parser")
        postings: list[JobPosting] = []
        for node in cls._select_outermost(soup=soup, selectors=JOB_SELECTORS):
            title = cls._extract_heading(node)
            link = node.find("a", href=True)
            if not title and link is not None:
                title = cls._clean_text(link.get_text(" ", strip=True))
            if not title:
                continue

            card_text = cls._clean_text(node.get_text(" ", strip=True))
            location = cls._text_of(node, "[class*='location']")
            department = cls._text_of(node, "[class*='department'], [class*='team']")
            description = cls._text_of(node, "[class*='description']")
            if description is None:
                paragraph = node.find("p")
                description = cls._clean_text(paragraph.get_text(" ", strip=True)) if paragraph else ""

            postings.append(
                JobPosting(
                    title=title,
                    location=location,
                    department=department,
                    description=description,
                    remote=detect_remote(location if location is not None else card_text),
                    employment_type=detect_employment_type(card_text),
                    strategic_importance=assess_job_importance(title, department),
                    url=urljoin(website.url, link["href"]) if link is not None else website.url,
                )
            )

        postings = cls._dedupe(postings)
        if not postings:
            raise ParseError("No job postings found")

        return JobPostingData(
            url=website.url,
            postings=postings,
            scraped_at=website.scraped_at,
            response_time_ms=website.response_time_ms,
            status_code=website.status_code,
        )

    @classmethod
    def visible_text(cls, markup: str) -> str:
        """
        Return whitespace-collapsed visible text of an HTML document or fragment.
        """

        return cls.visible_text_from_soup(BeautifulSoup(markup, "html.parser"))

    @classmethod
    def visible_text_from_soup(cls, soup: BeautifulSoup) -> str:
        for node in soup.find_all(NON_CONTENT_TAGS):
            node.decompose()
        return cls._clean_text(soup.get_text(" ", strip=True))

    @classmethod
    def _parse_plan(cls, node: Tag) -> PricingPlan | None:
        text = cls._clean_text(node.get_text(" ", strip=True))
        if not text:
            return None

        price_node = node.select_one("[class*='price']")
        price_text = cls._clean_text(price_node.get_text(" ", strip=True)) if price_node else text
        price = parse_price(price_text, allow_bare_number=price_node is not None)
        if price is None and price_node is None:
            return None

        return PricingPlan(
            name=cls._extract_heading(node) or "",
            price=price,
            interval=detect_billing_interval(price_text if price_node else text),
            is_popular=cls._is_popular(node, text),
            features=cls._extract_list_items(node),
        )

    @staticmethod
    def _is_popular(node: Tag, text: str) -> bool:
        classes = " ".join(node.get("class") or []).lower()
        if any(hint in classes for hint in POPULAR_CLASS_HINTS):
            return True
        if node.has_attr("data-popular"):
            return True
        lowered = text.lower()
        return any(hint in lowered for hint in POPULAR_TEXT_HINTS)

    @staticmethod
    def _detect_currency(text: str) -> str:
        match = PRICE_REGEX.search(text)
        if match is None:
            return "USD"
        return CURRENCY_CODES.get(match.group("currency").lower(), "USD")

    @staticmethod
    def _detect_product_status(text: str) -> str:
        lowered = text.lower()
        if "coming soon" in lowered:
            return "coming-soon"
        if re.search(r"\bbeta\b", lowered):
            return "beta"
        if any(word in lowered for word in ("deprecated", "discontinued", "end of life")):
            return "deprecated"
        return "active"

    @staticmethod
    def _select_outermost(*, soup: BeautifulSoup, selectors: list[str]) -> list[Tag]:
        # Nested matches (a card and its inner plan element) collapse into the outer one.
        matched = soup.select(", ".join(selectors))
        matched_ids = {id(node) for node in matched}
        outermost = [
            node
            for node in matched
            if not any(id(parent) in matched_ids for parent in node.parents)
        ]
        return outermost[:MAX_ITEMS]

    @classmethod
    def _extract_heading(cls, node: Tag) -> str | None:
        heading = node.find(["h1", "h2", "h3", "h4", "h5"])
        if heading is None:
            heading = node.select_one("[class*='name'], [class*='title'], strong, b")
        if heading is None:
            return None
        text = cls._clean_text(heading.get_text(" ", strip=True))
        return text[:180] or None

    @classmethod
    def _extract_list_items(cls, node: Tag) -> list[str]:
        items = []
        for item in node.find_all("li"):
            text = cls._clean_text(item.get_text(" ", strip=True))
            if text and text not in items:
                items.append(text)
        return items[:50]

    @classmethod
    def _text_of(cls, node: Tag, selector: str) -> str | None:
        found = node.select_one(selector)
        if found is None:
            return None
        return cls._clean_text(found.get_text(" ", strip=True)) or None

    @classmethod
    def _extract_metadata(cls, soup: BeautifulSoup) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        for meta in soup.find_all("meta"):
            key = meta.get("name") or meta.get("property")
            content = meta.get("content")
            if isinstance(key, str) and isinstance(content, str):
                metadata[key.strip().lower()] = content.strip()

        structured: list[Any] = []
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                structured.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.debug("Ignoring invalid JSON-LD block")
        if structured:
            metadata["structured_data"] = structured
        return metadata

    @staticmethod
    def _clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()

    @staticmethod
    def _dedupe(items: list[Any]) -> list[Any]:
        seen: set[str] = set()
        deduped = []
        for item in items:
            key = repr(item)
            if key in seen:
                continue
            seen.add(key)
            deduped.append(item)
        return deduped


def parse_price(text: str, *, allow_bare_number: bool = False) -> float | None:
    """
    Parse the first price in `text` to a number; "Free" parses as 0.0.

    Numbers without a currency marker only count when `allow_bare_number` is
    set, i.e. the text comes from a dedicated price element.
    """

    match = PRICE_REGEX.search(text)
    if match is not None:
        return float(match.group("amount").replace(",", ""))
    bare = BARE_AMOUNT_REGEX.search(text) if allow_bare_number else None
    if bare is not None:
        return float(bare.group(0).replace(",", ""))
    if FREE_REGEX.search(text):
        return 0.0
    return None


def detect_billing_interval(text: str) -> str:
    lowered = text.lower()
    if any(token in lowered for token in ("year", "annual", "/yr")):
        return "yearly"
    if any(token in lowered for token in ("month", "/mo")):
        return "monthly"
    return "one-time"


def detect_remote(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(hint in lowered for hint in REMOTE_HINTS)


def detect_employment_type(text: str) -> str:
    lowered = text.lower()
    if "intern" in lowered:
        return "internship"
    if "contract" in lowered or "freelance" in lowered:
        return "contract"
    if "part-time" in lowered or "part time" in lowered:
        return "part-time"
    return "full-time"


def assess_job_importance(title: str, department: str | None) -> str:
    """
    Rank how much a posting says about a competitor's strategy.

    C-level and founder hires are critical; leadership roles and technical
    departments are high; senior individual roles are medium.
    """

    lowered_title = title.lower()
    lowered_department = (department or "").lower()

    if re.search(r"\b(ceo|cto|cfo|coo|founder|co-founder)\b", lowered_title):
        return "critical"
    if (
        re.search(r"\b(director|vp|vice president|head of)\b", lowered_title)
        or any(hint in lowered_department for hint in TECHNICAL_DEPARTMENT_HINTS)
    ):
        return "high"
    if re.search(r"\b(manager|lead|senior|principal|staff)\b", lowered_title):
        return "medium"
    return "low"
