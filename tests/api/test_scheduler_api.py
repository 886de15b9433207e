"""Tests for the scheduler admin API."""
from unittest.mock import MagicMock, patch

import pytest

from vpnportal.scheduler.scheduler import SchedulerService


@pytest.fixture
def service():
    service = SchedulerService()
    service.start()
    with patch("vpnportal.scheduler.scheduler.get_scheduler_service", return_value=service):
        yield service
    service.stop()


class TestSchedulerAPI:
    """Tests for /api/scheduler/jobs."""

    def test_list_jobs(self, client, service, admin_headers):
        service.add_interval_job(MagicMock(), minutes=5, name="visible")
        response = client.get("/api/scheduler/jobs", headers=admin_headers)
        assert response.status_code == 200
        assert [j["id"] for j in response.json()] == ["visible"]

    def test_member_forbidden(self, client, service, member_headers):
        assert client.get("/api/scheduler/jobs", headers=member_headers).status_code == 403

    def test_delete_job(self, client, service, admin_headers):
        service.add_interval_job(MagicMock(), minutes=5, name="doomed")
        response = client.delete("/api/scheduler/jobs/doomed", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"status": "removed", "job_id": "doomed"}
        assert service.list_jobs() == []

    def test_delete_unknown_job(self, client, service, admin_headers):
        response = client.delete("/api/scheduler/jobs/nope", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"
