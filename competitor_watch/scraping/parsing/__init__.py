"""
HTML extractor exports.
"""

from competitor_watch.scraping.parsing.html_parsers import (
    HTMLParsingLayer,
    assess_job_importance,
    detect_billing_interval,
    detect_employment_type,
    detect_remote,
    parse_price,
)

__all__ = [
    "HTMLParsingLayer",
    "assess_job_importance",
    "detect_billing_interval",
    "detect_employment_type",
    "detect_remote",
    "parse_price",
]
