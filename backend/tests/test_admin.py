"""
Admin panel tests
"""
from api.admin import generate_slug
from models.library import Favorite
from models.user import User
from models.video import Category, Video


class TestAccess:
    """Admin-only routes"""

    def test_regular_user_forbidden(self, client, auth_headers):
        assert client.get("/api/admin/users", headers=auth_headers).status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/admin/users").status_code == 401


class TestUsers:
    """User management"""

    def test_list_and_search(self, client, test_user, admin_headers):
        data = client.get("/api/admin/users?search=testuser", headers=admin_headers).json()
        assert data["total"] == 1
        assert data["users"][0]["username"] == "testuser"

    def test_create_duplicate(self, client, test_user, admin_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "testuser", "email": "other@example.com", "password": "secret123"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_cannot_delete_self(self, client, test_admin, admin_headers):
        assert client.delete(f"/api/admin/users/{test_admin.id}", headers=admin_headers).status_code == 400

    def test_delete_user(self, client, test_db, test_user, admin_headers):
        user_id = test_user.id
        assert client.delete(f"/api/admin/users/{user_id}", headers=admin_headers).status_code == 200
        test_db.expire_all()
        assert test_db.query(User).filter(User.id == user_id).first() is None


class TestVideos:
    """Catalog management"""

    def test_create_updates_item_count(self, client, test_db, test_category, admin_headers):
        response = client.post(
            "/api/admin/videos",
            json={"title": "Bass Drop", "categoryId": test_category.id, "resolution": "4k"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["video"]["isPremium"] is True

        test_db.refresh(test_category)
        assert test_category.item_count == 1

    def test_delete_removes_library_rows(self, client, test_db, test_video, test_user, admin_headers):
        test_db.add(Favorite(user_id=test_user.id, video_id=test_video.id))
        test_db.commit()
        video_id = test_video.id

        assert client.delete(f"/api/admin/videos/{video_id}", headers=admin_headers).status_code == 200
        test_db.expire_all()
        assert test_db.query(Video).filter(Video.id == video_id).first() is None
        assert test_db.query(Favorite).count() == 0

    def test_batch_premium_and_featured(self, client, test_db, sample_videos, admin_headers):
        ids = [v.id for v in sample_videos[:2]]

        assert client.post(
            "/api/admin/videos/batch-update-premium", json={"videoIds": ids, "value": False}, headers=admin_headers
        ).json() == {"updated": 2}
        client.post("/api/admin/videos/batch-update-featured", json={"videoIds": ids, "value": True}, headers=admin_headers)

        test_db.expire_all()
        featured = test_db.query(Video).filter(Video.is_featured.is_(True)).all()
        assert sorted(v.id for v in featured) == sorted(ids)
        assert all(not v.is_premium for v in featured)

    def test_batch_move_category(self, client, test_db, sample_videos, test_category, admin_headers):
        target = Category(name="Wedding", slug="wedding", item_count=0)
        test_db.add(target)
        test_db.commit()

        response = client.post(
            "/api/admin/videos/batch-update-category",
            json={"videoIds": [sample_videos[0].id, sample_videos[1].id], "categoryId": target.id},
            headers=admin_headers,
        )
        assert response.json() == {"updated": 2}

        test_db.refresh(target)
        test_db.refresh(test_category)
        assert target.item_count == 2
        assert test_category.item_count == 2

    def test_batch_delete(self, client, test_db, sample_videos, admin_headers):
        ids = [v.id for v in sample_videos]
        assert client.post("/api/admin/videos/batch-delete", json={"videoIds": ids}, headers=admin_headers).json() == {"deleted": 4}
        assert test_db.query(Video).count() == 0


class TestCategories:
    """Category management"""

    def test_slug(self):
        assert generate_slug("Hip Hop / R&B") == "hip-hop-rb"
        assert generate_slug("***") == ""

    def test_create_and_duplicate(self, client, admin_headers):
        response = client.post("/api/admin/categories", json={"name": "Hip Hop", "iconName": "mic"}, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["slug"] == "hip-hop"

        assert client.post("/api/admin/categories", json={"name": "Hip Hop"}, headers=admin_headers).status_code == 400
        assert client.post("/api/admin/categories", json={"name": "!!!"}, headers=admin_headers).status_code == 400

    def test_rename_changes_slug(self, client, test_category, admin_headers):
        response = client.put(
            f"/api/admin/categories/{test_category.id}", json={"name": "Deep House"}, headers=admin_headers
        )
        assert response.json()["slug"] == "deep-house"

    def test_delete_blocked_while_in_use(self, client, test_video, test_category, admin_headers):
        assert client.delete(f"/api/admin/categories/{test_category.id}", headers=admin_headers).status_code == 400

    def test_delete_empty_category(self, client, test_category, admin_headers):
        assert client.delete(f"/api/admin/categories/{test_category.id}", headers=admin_headers).status_code == 200
