"""
Catalog browsing, search and recommendation tests
"""
from models.search_log import SearchLog
from models.video import Category
from services.download_service import record_download
from services.recommendation_service import (
    get_collaborative_recommendations,
    get_personalized_recommendations,
    get_related_videos,
)


class TestVideoList:
    """Public listing"""

    def test_default_envelope(self, client, sample_videos):
        response = client.get("/api/videos")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["page"] == 1
        assert data["limit"] == 12
        assert data["totalPages"] == 1
        assert data["videos"][0]["category"]["slug"] == "edm"

    def test_filters(self, client, sample_videos):
        free = client.get("/api/videos?premium=false").json()
        assert [v["title"] for v in free["videos"]] == ["Laser Countdown"]

        loops = client.get("/api/videos?loop=true&sort=title").json()
        assert [v["title"] for v in loops["videos"]] == ["Abstract Smoke", "Retro Grid Loop"]

        by_slug = client.get("/api/videos?category=edm").json()
        assert by_slug["total"] == 4
        assert client.get("/api/videos?category=unknown").json()["total"] == 0

    def test_pagination(self, client, sample_videos):
        data = client.get("/api/videos?limit=3&page=2&sort=popular").json()
        assert data["totalPages"] == 2
        assert [v["title"] for v in data["videos"]] == ["Abstract Smoke"]

    def test_featured_popular(self, client, sample_videos):
        videos = client.get("/api/videos/featured?type=popular&limit=2").json()
        assert [v["title"] for v in videos] == ["Laser Countdown", "Retro Grid Loop"]

    def test_video_detail_and_missing(self, client, test_video):
        assert client.get(f"/api/videos/{test_video.id}").json()["title"] == "Neon Tunnel"
        assert client.get("/api/videos/999").status_code == 404

    def test_preview_missing(self, client, test_video):
        assert client.get(f"/api/videos/{test_video.id}/preview").status_code == 404

    def test_categories(self, client, sample_videos):
        categories = client.get("/api/categories").json()
        assert [c["slug"] for c in categories] == ["edm"]

        videos = client.get("/api/categories/edm/videos?limit=2").json()
        assert videos["total"] == 4
        assert len(videos["videos"]) == 2
        assert client.get("/api/categories/nope/videos").status_code == 404


class TestSearch:
    """Filtered search with facets"""

    def test_title_matches_rank_first(self, client, sample_videos, test_category, make_video):
        make_video("Fog Machine", test_category, description="smoke and fog", download_count=100)

        data = client.get("/api/search?q=smoke").json()
        assert [v["title"] for v in data["videos"]] == ["Abstract Smoke", "Fog Machine"]
        assert data["query"] == "smoke"
        assert data["executionTimeMs"] is not None

    def test_facets_follow_filters(self, client, sample_videos):
        data = client.get("/api/search?premium=true").json()
        assert data["total"] == 3
        assert data["facets"]["categories"][0]["count"] == 3
        resolutions = {r["resolution"]: r["count"] for r in data["facets"]["resolutions"]}
        assert resolutions == {"1080p": 2, "720p": 1}

    def test_resolution_and_sort(self, client, sample_videos):
        data = client.get("/api/search?resolution=1080p&sort=title_desc").json()
        assert [v["title"] for v in data["videos"]] == ["Wedding Hearts", "Retro Grid Loop"]

    def test_invalid_sort_is_400(self, client):
        assert client.get("/api/search?sort=random").status_code == 400

    def test_queries_are_logged_and_ranked(self, client, test_db, sample_videos):
        client.get("/api/search?q=Loop")
        client.get("/api/search?q=loop")
        client.get("/api/search?q=smoke")

        assert test_db.query(SearchLog).count() == 3
        assert client.get("/api/search/popular").json()["terms"][0] == "loop"

    def test_autocomplete(self, client, sample_videos):
        assert client.get("/api/search/autocomplete?q=r").json() == {"suggestions": []}
        assert client.get("/api/search/autocomplete?q=re").json() == {"suggestions": ["Retro Grid Loop"]}


class TestRecommendations:
    """Related and personalized picks"""

    def test_related_fills_from_other_categories(self, test_db, sample_videos, make_video):
        other = Category(name="Wedding", slug="wedding", item_count=0)
        test_db.add(other)
        test_db.commit()
        outsider = make_video("Confetti Burst", other, download_count=500)

        related = get_related_videos(test_db, sample_videos[0].id, limit=4)
        assert [v.id for v in related[:3]] == [sample_videos[1].id, sample_videos[2].id, sample_videos[3].id]
        assert related[3].id == outsider.id

    def test_collaborative_needs_two_shared_downloads(self, test_db, member_user, test_user, sample_videos):
        for video in sample_videos[:2]:
            record_download(test_db, member_user, video)
            record_download(test_db, test_user, video)
        record_download(test_db, test_user, sample_videos[3])
        test_db.commit()

        picks = get_collaborative_recommendations(test_db, member_user.id, limit=5)
        assert [v.id for v in picks] == [sample_videos[3].id]

    def test_new_user_gets_popular(self, test_db, test_user, sample_videos):
        picks = get_personalized_recommendations(test_db, test_user.id, limit=2)
        assert [v.title for v in picks] == ["Laser Countdown", "Retro Grid Loop"]

    def test_endpoints(self, client, sample_videos, auth_headers):
        assert client.get("/api/recommendations/personalized").status_code == 401
        assert len(client.get("/api/recommendations/personalized?limit=3", headers=auth_headers).json()) == 3
        assert len(client.get("/api/recommendations/popular?limit=2").json()) == 2
        assert client.get("/api/recommendations/similar/999").status_code == 404

        curated = client.get("/api/recommendations/curated/club").json()
        assert curated["sets"][0]["category"]["name"] == "EDM"

        free = client.get(f"/api/recommendations/you-might-like?videoId={sample_videos[1].id}&includePremium=false").json()
        assert [v["title"] for v in free] == ["Laser Countdown"]
