"""Tests for the HTTP boundary."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from cronrelay.api.main import app, get_job_scheduler
from cronrelay.scheduler.jobs import JobSchedulerService


@pytest.fixture
def client(trigger_engine):
    """Test client whose scheduler talks to a mock trigger engine."""
    app.dependency_overrides[get_job_scheduler] = lambda: JobSchedulerService(trigger_engine)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _job(name, schedule, targets):
    return {"name": name, "schedule": schedule, "flag": False, "targets": targets}


class TestScheduleJobEndpoint:
    """Tests for POST /schedule-job."""

    def test_schedule_job_successfully(self, client, trigger_engine):
        response = client.post(
            "/schedule-job", json=_job("my-test-job", "*/5 * * * *", ["https://mock.api/job"])
        )

        assert response.status_code == 200
        assert response.text == "Job scheduled successfully"
        trigger_engine.register.assert_called_once()

    def test_invalid_unix_cron(self, client, trigger_engine):
        response = client.post(
            "/schedule-job", json=_job("invalid-job", "invalid cron", ["https://bad.url"])
        )

        assert response.status_code == 400
        assert response.text == "Invalid Unix cron expression: invalid cron"
        trigger_engine.register.assert_not_called()

    def test_invalid_quartz_cron(self, client):
        response = client.post(
            "/schedule-job", json=_job("bad-quartz", "0 0 31 2 *", ["https://test"])
        )

        assert response.status_code == 400
        assert "Invalid Quartz cron expression" in response.text

    def test_engine_failure(self, client, trigger_engine):
        trigger_engine.register.side_effect = RuntimeError("Service failed")

        response = client.post(
            "/schedule-job", json=_job("fail-job", "*/5 * * * *", ["https://fail.api"])
        )

        assert response.status_code == 400
        assert "Error scheduling job" in response.text

    def test_unexpected_service_error(self):
        service = MagicMock()
        service.schedule_job.side_effect = RuntimeError("Service failed")
        app.dependency_overrides[get_job_scheduler] = lambda: service
        try:
            response = TestClient(app).post(
                "/schedule-job", json=_job("fail-job", "*/5 * * * *", ["https://fail.api"])
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        assert "Error scheduling job" in response.text

    def test_missing_fields_rejected(self, client):
        response = client.post("/schedule-job", json={"name": "x"})
        assert response.status_code == 422


class TestJobEndpoints:
    """Tests for GET/DELETE /jobs against the SQL engine."""

    @pytest.fixture
    def sql_client(self, db):
        yield TestClient(app)

    def test_list_get_and_delete(self, sql_client):
        sql_client.post("/schedule-job", json=_job("nightly", "0 2 * * *", ["https://a"]))

        listed = sql_client.get("/jobs")
        assert listed.status_code == 200
        assert [j["name"] for j in listed.json()] == ["nightly"]

        one = sql_client.get("/jobs/nightly")
        assert one.status_code == 200
        assert one.json()["cron"] == "0 0 2 ? * *"
        assert one.json()["targets"] == ["https://a"]

        deleted = sql_client.delete("/jobs/nightly")
        assert deleted.status_code == 200
        assert sql_client.get("/jobs/nightly").status_code == 404

    def test_delete_missing(self, sql_client):
        assert sql_client.delete("/jobs/nope").status_code == 404
