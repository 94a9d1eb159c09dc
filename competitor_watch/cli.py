"""
Run one scraping operation from the command line and print the result as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

from competitor_watch.config import get_scraping_settings, load_env_files
from competitor_watch.domain.scraping_jobs import JobType
from competitor_watch.scheduler import validate_scraping_result
from competitor_watch.scraping import ScrapingService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape one competitor page.")
    parser.add_argument(
        "job_type",
        choices=[job_type.value for job_type in JobType],
        help="Page category to extract.",
    )
    parser.add_argument("url", help="Absolute http(s) URL of the page.")
    parser.add_argument(
        "--changes-against",
        dest="previous_file",
        default=None,
        help="File holding previous page content; reports website changes against it.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=0.0,
        help="Minimum change magnitude to report (0-1).",
    )
    return parser


def main(argv: list[str] | None = None, service: ScrapingService | None = None) -> int:
    args = build_parser().parse_args(argv)

    load_env_files()
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING").strip().upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = service or ScrapingService(settings=get_scraping_settings())
    try:
        if args.previous_file is not None:
            previous = Path(args.previous_file).read_text(encoding="utf-8")
            result = service.detect_website_changes(args.url, previous, threshold=args.threshold)
            payload = asdict(result)
        else:
            job_type = JobType(args.job_type)
            result = service.scrape(job_type, args.url)
            report = validate_scraping_result(result, job_type)
            payload = asdict(result)
            payload["validation"] = asdict(report)
    finally:
        service.close()

    print(json.dumps(payload, indent=2, default=str))
    return 0 if result.success else 1

