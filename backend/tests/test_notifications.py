"""
Notification, release calendar and WebSocket tests
"""
from datetime import datetime

import pytest
from starlette.websockets import WebSocketDisconnect

from models.notification import Notification, Release
from services import notification_service


@pytest.fixture
def notifications(test_db, test_user):
    rows = [
        notification_service.send_notification(test_db, test_user.id, f"Title {i}", f"Message {i}")
        for i in range(3)
    ]
    return rows


class TestNotifications:
    """Inbox"""

    def test_list_and_unread_count(self, client, notifications, auth_headers):
        assert len(client.get("/api/notifications", headers=auth_headers).json()) == 3
        assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"count": 3}

    def test_mark_selected_read(self, client, notifications, auth_headers):
        response = client.post("/api/notifications/read", json={"ids": [notifications[0].id]}, headers=auth_headers)
        assert response.json() == {"updated": 1}
        assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"count": 2}

    def test_mark_all_read(self, client, notifications, auth_headers):
        assert client.post("/api/notifications/read-all", headers=auth_headers).json() == {"updated": 3}

    def test_other_users_notifications_untouched(self, client, test_db, notifications, member_headers):
        response = client.post("/api/notifications/read", json={"ids": [n.id for n in notifications]}, headers=member_headers)
        assert response.json() == {"updated": 0}
        assert test_db.query(Notification).filter(Notification.read.is_(False)).count() == 3


class TestCategoryFollows:
    """New video alerts"""

    def test_follow_then_new_video_notifies(self, client, test_db, test_user, test_category, auth_headers, admin_headers):
        assert client.post(f"/api/notifications/categories/{test_category.id}", headers=auth_headers).status_code == 201

        response = client.post(
            "/api/admin/videos",
            json={"title": "Strobe Pack", "categoryId": test_category.id},
            headers=admin_headers,
        )
        assert response.status_code == 201

        notification = test_db.query(Notification).filter(Notification.user_id == test_user.id).one()
        assert notification.type == "new-video"
        assert "Strobe Pack" in notification.message

    def test_follow_unknown_category(self, client, auth_headers):
        assert client.post("/api/notifications/categories/999", headers=auth_headers).status_code == 404

    def test_unfollow(self, client, test_category, auth_headers):
        client.post(f"/api/notifications/categories/{test_category.id}", headers=auth_headers)
        assert client.delete(f"/api/notifications/categories/{test_category.id}", headers=auth_headers).status_code == 200
        assert client.delete(f"/api/notifications/categories/{test_category.id}", headers=auth_headers).status_code == 404


class TestDevicesAndCalendar:
    """Push targets and releases"""

    def test_register_device_is_idempotent(self, client, auth_headers):
        first = client.post("/api/notifications/devices", json={"deviceToken": "abc"}, headers=auth_headers).json()
        second = client.post("/api/notifications/devices", json={"deviceToken": "abc"}, headers=auth_headers).json()
        assert first["id"] == second["id"]
        assert len(client.get("/api/notifications/devices", headers=auth_headers).json()) == 1

    def test_calendar_window(self, client, test_db):
        test_db.add_all([
            Release(title="Spring pack", release_date=datetime(2024, 3, 1)),
            Release(title="Summer pack", release_date=datetime(2024, 6, 1)),
        ])
        test_db.commit()

        events = client.get("/api/notifications/calendar?start=2024-05-01T00:00:00&end=2024-07-01T00:00:00").json()
        assert [event["title"] for event in events] == ["Summer pack"]

    def test_calendar_rejects_inverted_window(self, client):
        response = client.get("/api/notifications/calendar?start=2024-07-01T00:00:00&end=2024-05-01T00:00:00")
        assert response.status_code == 400


class TestWebSocket:
    """Live channel"""

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws") as websocket:
                websocket.receive_json()

    def test_unread_on_connect_then_ping_and_mark_read(self, client, notifications, user_token):
        with client.websocket_connect(f"/ws?token={user_token}") as websocket:
            hello = websocket.receive_json()
            assert hello["type"] == "unread"
            assert hello["count"] == 3

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

            websocket.send_json({"type": "mark_read"})
            assert websocket.receive_json() == {"type": "marked_read", "updated": 3}

            websocket.send_json({"type": "dance"})
            assert websocket.receive_json()["type"] == "error"
