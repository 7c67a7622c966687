"""
Copyright moderation tests
"""
import pytest

from models.moderation import ContentAnalysisResult
from models.user import UserRole
from services.copyright_service import FLAG_THRESHOLD, check_copyright, keyword_analysis


@pytest.fixture
def reviewer_headers(staff_headers):
    return staff_headers(UserRole.REVIEWER)


class TestKeywordHeuristic:
    """Metadata scoring without Gemini"""

    def test_clean_title(self):
        result = keyword_analysis("Neon Tunnel", "Looping tunnel for club sets")
        assert result["confidence"] == 0
        assert result["potentialIssues"] is False

    def test_risky_title_is_flagged(self):
        result = keyword_analysis("Official Music Video ripped", "leaked")
        assert result["confidence"] == 100
        assert result["potentialIssues"] is True
        assert {c["severity"] for c in result["concerns"]} == {"high"}

    def test_whole_words_only(self):
        assert keyword_analysis("Tripped out visuals")["confidence"] == 0

    def test_check_stores_result(self, test_db, test_video):
        test_video.title = "Bootleg Vevo edit"
        test_db.commit()

        result = check_copyright(test_db, test_video.id)
        assert result.confidence == 70
        assert result.confidence >= FLAG_THRESHOLD
        assert result.needs_review is True
        assert result.result["source"] == "keywords"


class TestModerationApi:
    """Reviewer endpoints"""

    def test_requires_reviewer(self, client, test_video, auth_headers):
        assert client.post(f"/api/admin/moderation/videos/{test_video.id}/check", headers=auth_headers).status_code == 403

    def test_check_and_review(self, client, test_db, test_video, reviewer_headers):
        response = client.post(f"/api/admin/moderation/videos/{test_video.id}/check", headers=reviewer_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "clear"

        flagged = ContentAnalysisResult(video_id=test_video.id, analysis_type="copyright", confidence=80,
                                        status="flagged", needs_review=True)
        test_db.add(flagged)
        test_db.commit()

        queue = client.get("/api/admin/moderation/needs-review", headers=reviewer_headers).json()
        assert [r["id"] for r in queue] == [flagged.id]

        reviewed = client.post(
            f"/api/admin/moderation/analysis/{flagged.id}/review", json={"cleared": True}, headers=reviewer_headers
        ).json()
        assert reviewed["status"] == "clear"
        assert client.get("/api/admin/moderation/needs-review", headers=reviewer_headers).json() == []

    def test_check_unknown_video(self, client, reviewer_headers):
        assert client.post("/api/admin/moderation/videos/999/check", headers=reviewer_headers).status_code == 404

    def test_rights_edit_resets_verification(self, client, test_video, reviewer_headers):
        url = f"/api/admin/moderation/rights/{test_video.id}"
        assert client.put(url, json={"rightsHolder": "Studio X"}, headers=reviewer_headers).json()["verificationStatus"] == "pending"

        verified = client.post(f"{url}/verify", json={"approved": True}, headers=reviewer_headers).json()
        assert verified["verificationStatus"] == "verified"

        edited = client.put(url, json={"licenseType": "exclusive"}, headers=reviewer_headers).json()
        assert edited["verificationStatus"] == "pending"
        assert edited["rightsHolder"] == "Studio X"


class TestClaims:
    """Public claims"""

    def _claim(self, client, video_id):
        return client.post("/api/copyright/claims", json={
            "videoId": video_id,
            "claimantName": "Label Records",
            "claimantEmail": "legal@label.example.com",
            "reason": "This loop uses our artwork without a license",
        })

    def test_submit_and_resolve(self, client, test_video, reviewer_headers):
        response = self._claim(client, test_video.id)
        assert response.status_code == 201
        claim_id = response.json()["claim"]["id"]

        pending = client.get("/api/admin/moderation/claims/pending", headers=reviewer_headers).json()
        assert [c["id"] for c in pending] == [claim_id]

        resolved = client.post(
            f"/api/admin/moderation/claims/{claim_id}/resolve",
            json={"status": "rejected", "notes": "Licensed in 2023"},
            headers=reviewer_headers,
        )
        assert resolved.json()["status"] == "rejected"

        again = client.post(
            f"/api/admin/moderation/claims/{claim_id}/resolve", json={"status": "approved"}, headers=reviewer_headers
        )
        assert again.status_code == 409

    def test_claim_unknown_video(self, client):
        assert self._claim(client, 999).status_code == 404

    def test_resolve_status_is_validated(self, client, test_video, reviewer_headers):
        claim_id = self._claim(client, test_video.id).json()["claim"]["id"]
        response = client.post(
            f"/api/admin/moderation/claims/{claim_id}/resolve", json={"status": "reviewing"}, headers=reviewer_headers
        )
        assert response.status_code == 400
