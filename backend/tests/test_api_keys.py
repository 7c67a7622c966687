"""
API key and public API tests
"""
from datetime import datetime, timedelta

from models.api_key import ApiKey, ApiUsage
from services.api_key_service import create_api_key, generate_key_value, resolve_api_key


class TestKeyManagement:
    """Create, list, revoke"""

    def test_key_format(self):
        key = generate_key_value()
        assert key.startswith("tvp_")
        assert len(key) == 36

    def test_create_reveals_then_list_masks(self, client, auth_headers):
        created = client.post("/api/keys", json={"name": "Lighting desk"}, headers=auth_headers)
        assert created.status_code == 201
        key = created.json()["key"]
        assert created.json()["scopes"] == ["read"]

        listed = client.get("/api/keys", headers=auth_headers).json()
        assert listed[0]["key"] == f"{key[:8]}...{key[-4:]}"

    def test_revoke(self, client, test_db, test_user, auth_headers, member_headers):
        api_key = create_api_key(test_db, test_user.id, "old")

        assert client.delete(f"/api/keys/{api_key.id}", headers=member_headers).status_code == 404
        assert client.delete(f"/api/keys/{api_key.id}", headers=auth_headers).status_code == 200
        assert client.get("/api/keys", headers=auth_headers).json() == []
        assert resolve_api_key(test_db, api_key.key) is None

    def test_expired_key_is_unusable(self, test_db, test_user):
        api_key = create_api_key(test_db, test_user.id, "temp", expires_at=datetime.utcnow() - timedelta(minutes=1))
        assert resolve_api_key(test_db, api_key.key) is None


class TestPublicApi:
    """X-API-Key endpoints"""

    def test_requires_key(self, client):
        assert client.get("/api/v1/videos").status_code == 401
        assert client.get("/api/v1/videos", headers={"X-API-Key": "tvp_bogus"}).status_code == 401

    def test_lists_videos_and_logs_usage(self, client, test_db, test_user, sample_videos):
        api_key = create_api_key(test_db, test_user.id, "integration")
        headers = {"X-API-Key": api_key.key}

        response = client.get("/api/v1/videos?limit=2", headers=headers)
        assert response.status_code == 200
        assert response.json()["total"] == 4
        assert client.get("/api/v1/videos/999", headers=headers).status_code == 404

        usage = test_db.query(ApiUsage).order_by(ApiUsage.id).all()
        assert [(u.endpoint, u.status_code) for u in usage] == [
            ("/api/v1/videos", 200),
            ("/api/v1/videos/999", 404),
        ]

        test_db.expire_all()
        assert test_db.query(ApiKey).filter(ApiKey.id == api_key.id).one().last_used is not None

    def test_usage_stats(self, client, test_db, test_user, sample_videos, auth_headers):
        api_key = create_api_key(test_db, test_user.id, "stats")
        client.get("/api/v1/videos", headers={"X-API-Key": api_key.key})
        client.get("/api/v1/videos/999", headers={"X-API-Key": api_key.key})

        stats = client.get("/api/keys/usage?period=day", headers=auth_headers).json()
        assert stats["totalRequests"] == 2
        assert stats["successRate"] == 50.0

    def test_me(self, client, test_db, test_user):
        api_key = create_api_key(test_db, test_user.id, "me")
        assert client.get("/api/v1/me", headers={"X-API-Key": api_key.key}).json()["username"] == "testuser"
