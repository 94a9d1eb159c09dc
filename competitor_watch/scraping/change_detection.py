"""
Text snapshot diffing with classified change events.
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher

from competitor_watch.domain.scraped_records import ChangeEvent
from competitor_watch.scraping.parsing.html_parsers import PRICE_REGEX, HTMLParsingLayer

EXCERPT_LENGTH = 200
MIN_MAGNITUDE = 0.001
_MARKUP_HINT = re.compile(r"<[a-zA-Z!/][^>]*>")


class ChangeDetector:
    """
    Compares two text blobs and reports classified differences.

    Markup is reduced to visible text, lower-cased and split on whitespace;
    the magnitude of a change is ``1 - SequenceMatcher.ratio()`` over those
    tokens. Distinct inputs whose tokens match (markup-only or whitespace
    edits) still get a small non-zero magnitude from a line-level comparison.
    """

    def __init__(self, *, default_threshold: float = 0.1) -> None:
        self.default_threshold = _clamp(default_threshold)

    def compare(
        self,
        previous: str,
        current: str,
        *,
        threshold: float | None = None,
    ) -> list[ChangeEvent]:
        if previous == current:
            return []

        limit = self.default_threshold if threshold is None else _clamp(threshold)
        previous_text = normalize_text(previous)
        current_text = normalize_text(current)

        events: list[ChangeEvent] = []
        magnitude, added, removed = self._content_magnitude(previous, current, previous_text, current_text)
        if magnitude > limit:
            events.append(
                ChangeEvent(
                    change_type="content",
                    confidence=_clamp(magnitude),
                    description=(
                        f"Content changed by {magnitude:.0%}: "
                        f"{added} token(s) added, {removed} token(s) removed"
                    ),
                    old_value=_excerpt(previous_text),
                    new_value=_excerpt(current_text),
                )
            )

        pricing_event = self._pricing_change(previous_text, current_text)
        if pricing_event is not None and pricing_event.confidence > limit:
            events.append(pricing_event)
        return events

    @staticmethod
    def magnitude(previous: str, current: str) -> float:
        """
        Return the change magnitude in [0, 1] without emitting events.
        """

        if previous == current:
            return 0.0
        magnitude, _, _ = ChangeDetector._content_magnitude(
            previous,
            current,
            normalize_text(previous),
            normalize_text(current),
        )
        return magnitude

    @staticmethod
    def _content_magnitude(
        previous_raw: str,
        current_raw: str,
        previous_text: str,
        current_text: str,
    ) -> tuple[float, int, int]:
        previous_tokens = previous_text.split()
        current_tokens = current_text.split()
        matcher = SequenceMatcher(None, previous_tokens, current_tokens)

        added = 0
        removed = 0
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag in {"replace", "delete"}:
                removed += i2 - i1
            if tag in {"replace", "insert"}:
                added += j2 - j1

        magnitude = 1.0 - matcher.ratio()
        if magnitude <= 0.0:
            line_matcher = SequenceMatcher(None, previous_raw.splitlines(), current_raw.splitlines())
            magnitude = max(1.0 - line_matcher.ratio(), MIN_MAGNITUDE)
        return _clamp(magnitude), added, removed

    @staticmethod
    def _pricing_change(previous_text: str, current_text: str) -> ChangeEvent | None:
        previous_prices = _price_tokens(previous_text)
        current_prices = _price_tokens(current_text)
        if previous_prices == current_prices:
            return None

        removed = sorted(previous_prices - current_prices)
        added = sorted(current_prices - previous_prices)
        union = previous_prices | current_prices
        confidence = _clamp((len(removed) + len(added)) / len(union))
        return ChangeEvent(
            change_type="pricing",
            confidence=confidence,
            description=f"Prices changed: removed {removed or 'none'}, added {added or 'none'}",
            old_value=", ".join(sorted(previous_prices))[:EXCERPT_LENGTH] or None,
            new_value=", ".join(sorted(current_prices))[:EXCERPT_LENGTH] or None,
        )


def normalize_text(value: str) -> str:
    """
    Visible, lower-cased, whitespace-collapsed text of a snapshot.
    """

    if _MARKUP_HINT.search(value):
        value = HTMLParsingLayer.visible_text(value)
    return re.sub(r"\s+", " ", value).strip().lower()


def _price_tokens(text: str) -> set[str]:
    return {
        f"{match.group('currency').upper()}{match.group('amount').replace(',', '')}"
        for match in PRICE_REGEX.finditer(text)
    }


def _excerpt(text: str) -> str:
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[:EXCERPT_LENGTH] + "..."


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
