"""
tests/test_cli.py

Command-line entry point: JSON output and exit codes.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from competitor_watch.cli import main
from competitor_watch.config import ScrapingSettings
from competitor_watch.scraping import ScrapingService
from tests.fakes import PRICING_HTML, WEBSITE_HTML, FakeSession

HOME = "https://acme.test/"
PRICING = "https://acme.test/pricing"


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession({HOME: WEBSITE_HTML, PRICING: PRICING_HTML})


@pytest.fixture()
def service(scraping_settings: ScrapingSettings, session: FakeSession) -> ScrapingService:
    return ScrapingService(settings=scraping_settings, session=session)  # type: ignore[arg-type]


def test_scrape_prints_result_with_validation(
    service: ScrapingService,
    session: FakeSession,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code = main(["pricing", PRICING], service=service)

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["success"] is True
    assert [plan["name"] for plan in payload["data"]["plans"]] == ["Starter", "Pro", "Enterprise"]
    assert payload["validation"]["is_valid"] is True
    assert session.closed is True


def test_failed_scrape_exits_non_zero(service: ScrapingService, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["website", "https://acme.test/missing"], service=service)

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert payload["success"] is False
    assert "404" in payload["error"]
    assert payload["validation"]["is_valid"] is False


def test_changes_against_previous_file(
    service: ScrapingService,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    previous = tmp_path / "previous.html"
    previous.write_text("<html><body><p>Acme sells spreadsheets.</p></body></html>", encoding="utf-8")

    exit_code = main(["website", HOME, "--changes-against", str(previous)], service=service)

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["success"] is True
    assert payload["data"]
    assert payload["data"][0]["change_type"] == "content"
    assert "validation" not in payload


def test_unknown_job_type_is_a_usage_error(service: ScrapingService) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["newsletter", HOME], service=service)
    assert excinfo.value.code == 2
