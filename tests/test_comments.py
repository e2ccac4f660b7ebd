"""
Comments, @mentions and attachments
"""
import pytest
from types import SimpleNamespace
from httpx import AsyncClient
from sqlalchemy import select

from itasks.core.events import CommentAdded, UserMentioned
from itasks.db.models import Notification
from itasks.db.database import AsyncSessionLocal
from itasks.integrations.notifier import NotificationDispatcher
from itasks.utils.mentions import extract_mention_emails, merge_mentions, render_segments
from tests.conftest import auth_headers


class TestMentionParsing:

    def test_extract(self):
        content = "Hi @Tech@Helpdesk.io and @other@helpdesk.io, also @tech@helpdesk.io. Mail me at boss@helpdesk.io"
        assert extract_mention_emails(content) == ["tech@helpdesk.io", "other@helpdesk.io"]

    def test_render_segments(self):
        tess = SimpleNamespace(uuid="u-1", name="Tess Tech")
        segments = render_segments("ping @tech@helpdesk.io now, @nobody@helpdesk.io", {"tech@helpdesk.io": tess})
        assert segments == [
            {"type": "text", "text": "ping "},
            {"type": "mention", "text": "@tech@helpdesk.io", "user_id": "u-1", "name": "Tess Tech"},
            {"type": "text", "text": " now, @nobody@helpdesk.io"},
        ]

    def test_merge_excludes_author(self):
        assert merge_mentions([3, 1], [1, 2, 5], author_id=5) == [3, 1, 2]


class TestLifecycleComments:

    async def test_mentions_notify_only_mentioned(self, lifecycle, db_session, events, published, tech, other_tech, lead):
        events.subscribe(NotificationDispatcher(AsyncSessionLocal))
        task = await lifecycle.create_task({"title": "Printer"}, tech)

        comment = await lifecycle.add_comment(
            task.id, "@other@helpdesk.io can you check?", lead, mentioned_user_ids=[tech.id],
        )
        assert sorted(m.user_id for m in comment.mentions) == sorted([tech.id, other_tech.id])

        mentioned = [e.mentioned_user_id for e in published if isinstance(e, UserMentioned)]
        assert sorted(mentioned) == sorted([tech.id, other_tech.id])
        added = [e for e in published if isinstance(e, CommentAdded)]
        assert added[0].recipient_ids == ()

        rows = await db_session.execute(select(Notification.user_id, Notification.title))
        assert sorted(rows.all()) == sorted([(tech.id, "You were mentioned"), (other_tech.id, "You were mentioned")])

    async def test_plain_comment_notifies_followers(self, lifecycle, published, tech, other_tech, lead):
        task = await lifecycle.create_task({"title": "Printer", "assignee_id": other_tech.id}, tech)
        await lifecycle.add_comment(task.id, "Toner replaced", lead)

        added = [e for e in published if isinstance(e, CommentAdded)][-1]
        assert set(added.recipient_ids) == {other_tech.id, tech.id}


class TestCommentEndpoints:

    async def test_add_list_delete(self, client: AsyncClient, tech, other_tech, admin):
        task = (await client.post("/api/v1/tasks/", json={"title": "Monitor flicker"}, headers=auth_headers(tech))).json()

        response = await client.post(
            f"/api/v1/tasks/{task['id']}/comments",
            json={"content": "Swapped cable, @other@helpdesk.io please confirm"},
            headers=auth_headers(tech),
        )
        assert response.status_code == 201
        comment = response.json()
        assert [m["email"] for m in comment["mentions"]] == ["other@helpdesk.io"]
        assert [s["type"] for s in comment["segments"]] == ["text", "mention", "text"]

        listing = await client.get(f"/api/v1/tasks/{task['id']}/comments", headers=auth_headers(other_tech))
        assert [c["id"] for c in listing.json()] == [comment["id"]]

        response = await client.delete(f"/api/v1/comments/{comment['id']}", headers=auth_headers(other_tech))
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: only the author or an Admin can delete this comment"

        response = await client.delete(f"/api/v1/comments/{comment['id']}", headers=auth_headers(admin))
        assert response.status_code == 204
        listing = await client.get(f"/api/v1/tasks/{task['id']}/comments", headers=auth_headers(tech))
        assert listing.json() == []

    async def test_empty_comment_rejected(self, client: AsyncClient, tech):
        task = (await client.post("/api/v1/tasks/", json={"title": "Empty"}, headers=auth_headers(tech))).json()
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/comments", json={"content": "   "}, headers=auth_headers(tech)
        )
        assert response.status_code == 422


class TestAttachmentEndpoints:

    async def test_upload_download_delete(self, client: AsyncClient, tech, other_tech):
        task = (await client.post("/api/v1/tasks/", json={"title": "Logs"}, headers=auth_headers(tech))).json()

        response = await client.post(
            f"/api/v1/tasks/{task['id']}/attachments",
            files={"file": ("event log.txt", b"disk error at 02:00", "text/plain")},
            headers=auth_headers(tech),
        )
        assert response.status_code == 201, response.text
        attachment = response.json()
        assert attachment["filename"] == "event log.txt"
        assert attachment["size_bytes"] == 19

        download = await client.get(f"/api/v1/attachments/{attachment['id']}/download", headers=auth_headers(tech))
        assert download.status_code == 200
        assert download.content == b"disk error at 02:00"

        response = await client.delete(f"/api/v1/attachments/{attachment['id']}", headers=auth_headers(other_tech))
        assert response.status_code == 403

        response = await client.delete(f"/api/v1/attachments/{attachment['id']}", headers=auth_headers(tech))
        assert response.status_code == 204
        listing = await client.get(f"/api/v1/tasks/{task['id']}/attachments", headers=auth_headers(tech))
        assert listing.json() == []

    async def test_disallowed_type(self, client: AsyncClient, tech):
        task = (await client.post("/api/v1/tasks/", json={"title": "Malware"}, headers=auth_headers(tech))).json()
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/attachments",
            files={"file": ("setup.exe", b"MZ", "application/x-msdownload")},
            headers=auth_headers(tech),
        )
        assert response.status_code == 422
        assert response.json()["field"] == "file"
