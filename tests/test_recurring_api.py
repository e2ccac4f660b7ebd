"""
Recurring configuration endpoints
"""
import pytest
from datetime import datetime, timezone
from httpx import AsyncClient

from tests.conftest import auth_headers
from itasks.db import crud
from itasks.db.models import TaskPriority


def config_payload(assignee, **overrides):
    payload = {
        "name": "Weekly patch review",
        "cron": "0 8 * * 1",
        "template_title": "Review pending patches",
        "template_priority": "High",
        "template_assignee_id": str(assignee.uuid),
        "template_context": {"environment": "Production"},
    }
    payload.update(overrides)
    return payload


class TestRecurringConfigs:

    async def test_create_computes_next_generation(self, client: AsyncClient, lead, tech):
        response = await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(lead))
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["next_generation_at"] is not None
        assert data["template_assignee"]["id"] == str(tech.uuid)
        assert data["template_context"]["environment"] == "Production"

    async def test_invalid_cron_rejected(self, client: AsyncClient, lead, tech):
        response = await client.post(
            "/api/v1/recurring/", json=config_payload(tech, cron="0 8 * *"), headers=auth_headers(lead)
        )
        assert response.status_code == 422

    async def test_technician_cannot_create(self, client: AsyncClient, tech):
        response = await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(tech))
        assert response.status_code == 403

    async def test_run_now_and_recent_tasks(self, client: AsyncClient, lead, tech):
        config = (await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(lead))).json()

        response = await client.post(f"/api/v1/recurring/{config['id']}/run", headers=auth_headers(lead))
        assert response.status_code == 201
        task = response.json()
        assert task["title"] == "Review pending patches"
        assert task["type"] == "Recurring_Instance"
        assert task["recurring_config_id"] == config["id"]
        assert task["context"]["environment"] == "Production"

        detail = await client.get(f"/api/v1/recurring/{config['id']}", headers=auth_headers(tech))
        body = detail.json()
        assert [t["id"] for t in body["recent_tasks"]] == [task["id"]]
        assert body["last_generated_at"] is not None

    async def test_update_cron_moves_schedule(self, client: AsyncClient, lead, tech):
        config = (await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(lead))).json()

        response = await client.patch(
            f"/api/v1/recurring/{config['id']}", json={"cron": "30 6 * * *"}, headers=auth_headers(lead)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["cron"] == "30 6 * * *"
        assert "06:30:00" in data["next_generation_at"]

    async def test_delete_keeps_generated_tasks(self, client: AsyncClient, lead, tech):
        config = (await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(lead))).json()
        task = (await client.post(f"/api/v1/recurring/{config['id']}/run", headers=auth_headers(lead))).json()

        response = await client.delete(f"/api/v1/recurring/{config['id']}", headers=auth_headers(lead))
        assert response.status_code == 204

        assert (await client.get(f"/api/v1/recurring/{config['id']}", headers=auth_headers(lead))).status_code == 404
        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(lead))
        assert response.status_code == 200
        assert response.json()["recurring_config_id"] is None

    async def test_evaluate_endpoint(self, client: AsyncClient, lead, tech):
        await client.post("/api/v1/recurring/", json=config_payload(tech), headers=auth_headers(lead))
        response = await client.post("/api/v1/recurring/evaluate", headers=auth_headers(lead))
        assert response.status_code == 200
        # Freshly created configs are scheduled in the future
        assert response.json() == {"generated": [], "failures": []}

    async def test_evaluate_reports_failure_after_success(self, client: AsyncClient, db_session, lead, tech):
        overdue = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        for name, assignee_id in (("A disk check", tech.id), ("B orphaned check", None)):
            await crud.recurring.create_config(db_session, {
                "name": name,
                "cron": "0 8 * * *",
                "enabled": True,
                "template_title": f"{name} task",
                "template_priority": TaskPriority.MEDIUM,
                "template_assignee_id": assignee_id,
                "next_generation_at": overdue,
            })
        headers = auth_headers(lead)

        response = await client.post("/api/v1/recurring/evaluate", headers=headers)

        assert response.status_code == 200, response.text
        body = response.json()
        assert [t["title"] for t in body["generated"]] == ["A disk check task"]
        assert body["generated"][0]["assignee"]["email"] == "tech@helpdesk.io"
        assert [f["config_name"] for f in body["failures"]] == ["B orphaned check"]
        assert body["failures"][0]["error_type"] == "ValidationError"
