"""
Task endpoints over HTTP
"""
import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


async def create_task(client, user, **payload):
    payload.setdefault("title", "Email not syncing")
    response = await client.post("/api/v1/tasks/", json=payload, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateAndRead:

    async def test_create_defaults(self, client: AsyncClient, tech):
        data = await create_task(client, tech, priority="Critical", context={"workstation_id": "WS-042"})

        assert data["status"] == "Open"
        assert data["priority"] == "Critical"
        assert data["type"] == "Standard"
        assert data["assignee"]["email"] == "tech@helpdesk.io"
        assert data["creator"]["email"] == "tech@helpdesk.io"
        assert data["context"]["workstation_id"] == "WS-042"
        assert data["sla_deadline"] is not None

    async def test_create_with_assignee_and_subscribers(self, client: AsyncClient, lead, tech, other_tech):
        data = await create_task(
            client, lead,
            assignee_id=str(tech.uuid),
            subscriber_ids=[str(other_tech.uuid)],
        )
        assert data["assignee"]["id"] == str(tech.uuid)
        assert [s["id"] for s in data["subscribers"]] == [str(other_tech.uuid)]

    async def test_unknown_assignee(self, client: AsyncClient, lead):
        response = await client.post(
            "/api/v1/tasks/",
            json={"title": "Ghost", "assignee_id": "7d5e3c1a-2b4f-4e6a-9c8d-1f2e3a4b5c6d"},
            headers=auth_headers(lead),
        )
        assert response.status_code == 404

    async def test_viewer_forbidden(self, client: AsyncClient, viewer):
        response = await client.post("/api/v1/tasks/", json={"title": "Read only"}, headers=auth_headers(viewer))
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: viewers cannot create tasks"

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/v1/tasks/")
        assert response.status_code == 401

    async def test_list_filters(self, client: AsyncClient, tech, lead):
        await create_task(client, tech, title="Low one", priority="Low")
        await create_task(client, tech, title="High one", priority="High", branch="Athens")

        response = await client.get("/api/v1/tasks/?priority=High", headers=auth_headers(lead))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["title"] == "High one"

        response = await client.get("/api/v1/tasks/?branch=Athens", headers=auth_headers(lead))
        assert [t["title"] for t in response.json()["items"]] == ["High one"]

        response = await client.get("/api/v1/tasks/?search=low", headers=auth_headers(lead))
        assert [t["title"] for t in response.json()["items"]] == ["Low one"]

    async def test_my_tasks_includes_subscriptions(self, client: AsyncClient, lead, tech, other_tech):
        await create_task(client, lead, title="Assigned", assignee_id=str(tech.uuid))
        await create_task(client, lead, title="Following", assignee_id=str(other_tech.uuid),
                          subscriber_ids=[str(tech.uuid)])
        await create_task(client, lead, title="Unrelated", assignee_id=str(other_tech.uuid))

        response = await client.get("/api/v1/tasks/mine", headers=auth_headers(tech))
        assert sorted(t["title"] for t in response.json()["items"]) == ["Assigned", "Following"]

    async def test_get_missing_task(self, client: AsyncClient, tech):
        response = await client.get(
            "/api/v1/tasks/7d5e3c1a-2b4f-4e6a-9c8d-1f2e3a4b5c6d", headers=auth_headers(tech)
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"


class TestMutations:

    async def test_title_edit_rejected(self, client: AsyncClient, tech):
        task = await create_task(client, tech, title="Fixed title")
        response = await client.patch(
            f"/api/v1/tasks/{task['id']}", json={"title": "New title"}, headers=auth_headers(tech)
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Title cannot be changed after creation"

        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(tech))
        assert response.json()["title"] == "Fixed title"

    async def test_edit_description(self, client: AsyncClient, tech):
        task = await create_task(client, tech)
        response = await client.patch(
            f"/api/v1/tasks/{task['id']}", json={"description": "Outlook profile rebuilt"}, headers=auth_headers(tech)
        )
        assert response.status_code == 200
        assert response.json()["description"] == "Outlook profile rebuilt"

    async def test_status_change_by_stranger(self, client: AsyncClient, tech, other_tech):
        task = await create_task(client, tech)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/status", json={"status": "Closed"}, headers=auth_headers(other_tech)
        )
        assert response.status_code == 403
        assert response.json()["detail"] == (
            "Forbidden: only Admin, TeamLead, the assignee or the creator can change the status of this task"
        )

    async def test_status_change(self, client: AsyncClient, tech):
        task = await create_task(client, tech)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/status",
            json={"status": "PendingVendor", "note": "Waiting on Microsoft"},
            headers=auth_headers(tech),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "PendingVendor"

        audit = await client.get(f"/api/v1/tasks/{task['id']}/audit", headers=auth_headers(tech))
        actions = [entry["action"] for entry in audit.json()]
        assert actions[0] == "create"
        assert "status_change" in actions

    async def test_assign_requires_manager(self, client: AsyncClient, tech, other_tech, lead):
        task = await create_task(client, tech)
        url = f"/api/v1/tasks/{task['id']}/assign"

        response = await client.post(url, json={"assignee_id": str(other_tech.uuid)}, headers=auth_headers(tech))
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: only Admin and TeamLead can assign tasks"

        response = await client.post(url, json={"assignee_id": str(other_tech.uuid)}, headers=auth_headers(lead))
        assert response.status_code == 200
        assert response.json()["assignee"]["id"] == str(other_tech.uuid)

    async def test_subscriber_endpoints(self, client: AsyncClient, tech, other_tech, lead):
        task = await create_task(client, tech)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/subscribers",
            json={"user_id": str(other_tech.uuid)},
            headers=auth_headers(lead),
        )
        assert [s["id"] for s in response.json()["subscribers"]] == [str(other_tech.uuid)]

        response = await client.delete(
            f"/api/v1/tasks/{task['id']}/subscribers/{other_tech.uuid}", headers=auth_headers(lead)
        )
        assert response.json()["subscribers"] == []

    async def test_delete(self, client: AsyncClient, tech, admin):
        task = await create_task(client, tech, title="Short lived")
        response = await client.delete(f"/api/v1/tasks/{task['id']}", headers=auth_headers(tech))
        assert response.status_code == 200
        assert response.json() == {"id": task["id"], "title": "Short lived", "deleted": True}

        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(tech))
        assert response.status_code == 404

        logs = await client.get(f"/api/v1/system/logs?task_id={task['id']}", headers=auth_headers(admin))
        assert logs.status_code == 200
        assert "Delete" in [entry["action_type"] for entry in logs.json()["items"]]


class TestSlaDashboard:

    async def test_managers_only(self, client: AsyncClient, tech):
        response = await client.get("/api/v1/sla/", headers=auth_headers(tech))
        assert response.status_code == 403

    async def test_overdue_and_approaching(self, client: AsyncClient, tech, lead):
        await create_task(client, tech, title="Overdue", sla_deadline="2020-01-01T00:00:00Z")
        await create_task(client, tech, title="Soon", priority="Critical")
        await create_task(client, tech, title="Later", priority="Low")

        response = await client.get("/api/v1/sla/", headers=auth_headers(lead))
        assert response.status_code == 200
        body = response.json()
        assert [t["title"] for t in body["overdue"]] == ["Overdue"]
        assert body["overdue"][0]["hours_remaining"] == 0
        assert [t["title"] for t in body["approaching"]] == ["Soon"]
        assert body["approaching"][0]["hours_remaining"] in (3, 4)
