"""
Analytics report tests
"""
import pytest

from models.user import UserRole
from services.analytics_service import get_category_analytics, get_engagement_metrics, revenue_by_tier
from services.download_service import record_download


@pytest.fixture
def analytics_headers(staff_headers):
    return staff_headers(UserRole.ANALYTICS)


@pytest.fixture
def downloads(test_db, member_user, test_user, sample_videos):
    record_download(test_db, member_user, sample_videos[1])
    record_download(test_db, member_user, sample_videos[2])
    record_download(test_db, test_user, sample_videos[0])
    test_db.commit()


class TestReports:
    """Service-level metrics"""

    def test_revenue_converts_cents(self, test_db, member_user):
        assert revenue_by_tier(test_db) == {"total": 29.99, "byMembershipTier": {"Pro Monthly": 29.99}}

    def test_category_popularity(self, test_db, downloads, test_category):
        report = get_category_analytics(test_db)
        assert report[0]["id"] == test_category.id
        assert report[0]["downloads"] == 3
        assert report[0]["popularity"] == 100
        assert report[0]["mostDownloaded"]["title"] == "Laser Countdown"

    def test_engagement(self, test_db, downloads):
        metrics = get_engagement_metrics(test_db)
        assert metrics["activeUsers"] == 2
        assert metrics["avgDownloadsPerUser"] == 1.5
        assert metrics["totalSubscribers"] == 1


class TestAnalyticsApi:
    """Role-gated endpoints"""

    def test_requires_analytics_role(self, client, auth_headers):
        assert client.get("/api/admin/statistics", headers=auth_headers).status_code == 403

    def test_statistics(self, client, downloads, analytics_headers):
        stats = client.get("/api/admin/statistics", headers=analytics_headers).json()
        assert stats["totalVideos"] == 4
        assert stats["totalDownloads"] == 3
        assert stats["activeMemberships"] == 1
        assert stats["totalCategories"] == 1

    def test_dashboard(self, client, downloads, sample_videos, analytics_headers):
        data = client.get("/api/admin/analytics/dashboard", headers=analytics_headers).json()
        assert data["totalDownloads"] == 3
        assert data["premiumDownloads"] == 2
        assert data["standardDownloads"] == 1
        assert data["revenues"]["total"] == 29.99

    def test_inverted_window(self, client, analytics_headers):
        response = client.get(
            "/api/admin/analytics/dashboard?startDate=2024-06-01T00:00:00&endDate=2024-01-01T00:00:00",
            headers=analytics_headers,
        )
        assert response.status_code == 400

    def test_top_content(self, client, downloads, sample_videos, analytics_headers):
        top = client.get("/api/admin/analytics/top-content", headers=analytics_headers).json()
        assert {entry["id"] for entry in top} == {v.id for v in sample_videos[:3]}
        assert all(entry["downloads"] == 1 for entry in top)
