"""
tests/test_api.py

HTTP contract of the scraping job endpoints, exercised through FastAPI's
TestClient against a scheduler wired to a fake HTTP session.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from competitor_watch.config import ScrapingSettings, SchedulerSettings
from competitor_watch.main import create_app
from competitor_watch.scheduler import ScrapingScheduler
from competitor_watch.scraping import ScrapingService
from tests.fakes import JOBS_HTML, PRICING_HTML, WEBSITE_HTML, FakeClock, FakeSession

HOME = "https://acme.test/"
PRICING = "https://acme.test/pricing"
CAREERS = "https://acme.test/careers"


@pytest.fixture()
def scheduler(
    scraping_settings: ScrapingSettings,
    scheduler_settings: SchedulerSettings,
    clock: FakeClock,
) -> ScrapingScheduler:
    session = FakeSession({HOME: WEBSITE_HTML, PRICING: PRICING_HTML, CAREERS: JOBS_HTML})
    service = ScrapingService(settings=scraping_settings, session=session)  # type: ignore[arg-type]
    return ScrapingScheduler(service=service, settings=scheduler_settings, clock=clock)


@pytest.fixture()
def client(scheduler: ScrapingScheduler) -> Iterator[TestClient]:
    with TestClient(create_app(scheduler=scheduler)) as test_client:
        yield test_client


def _create_job(client: TestClient, **overrides: object) -> str:
    payload: dict[str, object] = {
        "competitor_id": "comp_1",
        "user_id": "user_1",
        "job_type": "website",
        "url": HOME,
        "frequency": {"kind": "interval", "minutes": 60},
    }
    payload.update(overrides)
    response = client.post("/scraping/jobs", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["job_id"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


def test_health_reports_scheduler_state(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "scheduler_running": False, "total_jobs": 0}


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestScheduleEndpoints:
    def test_schedule_and_fetch_job(self, client: TestClient) -> None:
        job_id = _create_job(client, job_type="pricing", url=PRICING)

        body = client.get(f"/scraping/jobs/{job_id}").json()
        assert body["job"]["id"] == job_id
        assert body["job"]["status"] == "pending"
        assert body["job"]["priority"] == "high"
        assert body["job"]["frequency"] == {"kind": "interval", "minutes": 60}
        assert body["job"]["config"]["change_threshold"] == pytest.approx(0.1)
        assert body["history"] == []
        assert body["stats"]["total_executions"] == 0
        assert body["stats"]["last_execution_at"] is None

    def test_manual_job_has_no_next_run(self, client: TestClient) -> None:
        job_id = _create_job(client, frequency={"kind": "manual", "minutes": None})
        job = client.get(f"/scraping/jobs/{job_id}").json()["job"]
        assert job["frequency"] == {"kind": "manual", "minutes": None}
        assert job["next_run_at"] is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"job_type": "newsletter"},
            {"frequency": {"kind": "interval", "minutes": 0}},
            {"frequency": {"kind": "interval", "minutes": None}},
            {"max_retries": -1},
            {"config": {"change_threshold": 1.5}},
            {"url": ""},
        ],
    )
    def test_invalid_payloads_are_rejected(self, client: TestClient, overrides: dict[str, object]) -> None:
        payload: dict[str, object] = {
            "competitor_id": "comp_1",
            "user_id": "user_1",
            "job_type": "website",
            "url": HOME,
        }
        payload.update(overrides)
        assert client.post("/scraping/jobs", json=payload).status_code == 422

    def test_schedule_competitor_fans_out(self, client: TestClient) -> None:
        response = client.post(
            "/competitors/comp_9/scraping",
            json={
                "user_id": "user_1",
                "name": "Acme",
                "domain": "acme.test",
                "threat_level": "High",
                "pages": {"pricing": PRICING, "jobs": CAREERS},
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["competitor_id"] == "comp_9"
        assert len(body["job_ids"]) == 3

        jobs = client.get("/competitors/comp_9/scraping/jobs").json()
        assert [job["job_type"] for job in jobs] == ["website", "pricing", "jobs"]
        assert [job["frequency"]["minutes"] for job in jobs] == [240, 240, 480]

    def test_competitor_without_domain_gets_no_jobs(self, client: TestClient) -> None:
        response = client.post("/competitors/comp_2/scraping", json={"user_id": "user_1"})
        assert response.status_code == 201
        assert response.json()["job_ids"] == []

    def test_unknown_threat_level_is_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/competitors/comp_2/scraping",
            json={"user_id": "user_1", "domain": "acme.test", "threat_level": "apocalyptic"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Control
# ---------------------------------------------------------------------------


class TestControlEndpoints:
    def test_pause_then_resume(self, client: TestClient) -> None:
        job_id = _create_job(client)

        paused = client.put(f"/scraping/jobs/{job_id}", json={"action": "pause"})
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"

        again = client.put(f"/scraping/jobs/{job_id}", json={"action": "pause"})
        assert again.status_code == 409
        assert "paused" in again.json()["detail"]

        resumed = client.put(f"/scraping/jobs/{job_id}", json={"action": "resume"})
        assert resumed.json()["status"] == "pending"

    def test_execute_runs_job_and_records_history(self, client: TestClient) -> None:
        job_id = _create_job(client)

        response = client.put(f"/scraping/jobs/{job_id}", json={"action": "execute"})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["execution"]["success"] is True
        assert body["execution"]["data"]["title"] == "Acme Analytics"

        detail = client.get(f"/scraping/jobs/{job_id}").json()
        assert len(detail["history"]) == 1
        assert detail["stats"]["successful_executions"] == 1
        assert detail["stats"]["success_rate"] == pytest.approx(1.0)
        assert detail["stats"]["last_execution_at"] is not None

    def test_execute_paused_job_conflicts(self, client: TestClient) -> None:
        job_id = _create_job(client)
        client.put(f"/scraping/jobs/{job_id}", json={"action": "pause"})
        assert client.put(f"/scraping/jobs/{job_id}", json={"action": "execute"}).status_code == 409

    def test_cancel_removes_idle_job(self, client: TestClient) -> None:
        job_id = _create_job(client)
        response = client.put(f"/scraping/jobs/{job_id}", json={"action": "cancel"})
        assert response.json()["status"] == "removed"
        assert client.get(f"/scraping/jobs/{job_id}").status_code == 404

    def test_reenable_pending_job_conflicts(self, client: TestClient) -> None:
        job_id = _create_job(client)
        assert client.put(f"/scraping/jobs/{job_id}", json={"action": "reenable"}).status_code == 409

    def test_unknown_job_and_action(self, client: TestClient) -> None:
        assert client.get("/scraping/jobs/job_missing").status_code == 404
        assert client.put("/scraping/jobs/job_missing", json={"action": "pause"}).status_code == 404

        job_id = _create_job(client)
        assert client.put(f"/scraping/jobs/{job_id}", json={"action": "explode"}).status_code == 422

    def test_delete_job(self, client: TestClient) -> None:
        job_id = _create_job(client)
        assert client.delete(f"/scraping/jobs/{job_id}").status_code == 204
        assert client.delete(f"/scraping/jobs/{job_id}").status_code == 404


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def test_metrics_count_jobs_by_status(client: TestClient) -> None:
    first = _create_job(client)
    _create_job(client, job_type="pricing", url=PRICING)
    client.put(f"/scraping/jobs/{first}", json={"action": "pause"})

    body = client.get("/scraping/metrics").json()
    assert body["total_jobs"] == 2
    assert body["by_status"]["paused"] == 1
    assert body["by_status"]["pending"] == 1
    assert sum(body["by_status"].values()) == 2
    assert body["total_executions"] == 0
