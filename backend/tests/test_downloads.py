"""
Download, quota and secure streaming tests
"""
import time

import pytest

from core.config import settings
from jose import jwt
from models.download import Download
from models.user import User
from services.download_service import (
    DownloadError,
    get_available_formats,
    process_download,
    record_download,
    verify_resume_token,
)
from services.media_stream import RangeNotSatisfiable, parse_range_header
from services.secure_streaming import (
    PURPOSE_DOWNLOAD,
    PURPOSE_STREAM,
    StreamTokenError,
    generate_streaming_token,
    verify_streaming_token,
    watermark_text,
)


class TestFormats:
    """Offered renditions"""

    def test_original_uses_video_resolution(self, test_video):
        formats = {fmt["id"]: fmt for fmt in get_available_formats(test_video)}
        assert set(formats) == {"original", "high", "medium", "low", "webm", "looped-mp4"}
        assert formats["original"]["resolution"] == "1080p"
        assert formats["webm"]["extension"] == "webm"

    def test_formats_endpoint(self, client, test_video):
        response = client.get(f"/api/downloads/formats/{test_video.id}")
        assert response.status_code == 200
        assert len(response.json()["formats"]) == 6

    def test_formats_unknown_video(self, client):
        assert client.get("/api/downloads/formats/999").status_code == 404


class TestDownloadQuota:
    """Credit accounting"""

    def test_download_decrements_credit_once(self, test_db, member_user, test_video):
        result = process_download(test_db, member_user.id, test_video.id, "original")

        assert result["success"] is True
        assert result["downloadsRemaining"] == 4
        assert result["downloadsUsed"] == 1
        assert result["downloadUrl"].startswith(f"/api/videos/{test_video.id}/download/original?token=")

        test_db.refresh(test_video)
        assert test_video.download_count == 1
        assert test_db.query(Download).count() == 1

    def test_remaining_never_goes_negative(self, test_db, member_user, test_video):
        member_user.downloads_remaining = 0
        record_download(test_db, member_user, test_video)
        test_db.commit()
        assert member_user.downloads_remaining == 0

    def test_exhausted_quota_is_refused(self, test_db, member_user, test_video):
        member_user.downloads_remaining = 0
        test_db.commit()

        with pytest.raises(DownloadError) as excinfo:
            process_download(test_db, member_user.id, test_video.id, "original")
        assert excinfo.value.status_code == 403

    def test_premium_requires_membership(self, client, test_video, auth_headers):
        response = client.post("/api/downloads/initiate", json={"videoId": test_video.id}, headers=auth_headers)
        assert response.status_code == 403

    def test_free_video_for_non_member(self, client, test_db, test_video, auth_headers):
        test_video.is_premium = False
        test_db.commit()

        response = client.post(f"/api/videos/{test_video.id}/download", json={"formatId": "low"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["downloadsRemaining"] is None

    def test_invalid_format(self, client, test_video, member_headers):
        response = client.post(
            "/api/downloads/initiate",
            json={"videoId": test_video.id, "formatId": "8k"},
            headers=member_headers,
        )
        assert response.status_code == 400

    def test_history_newest_first(self, client, test_db, member_user, sample_videos, member_headers):
        for video in sample_videos[:3]:
            process_download(test_db, member_user.id, video.id, "original")

        response = client.get("/api/downloads/history?limit=2", headers=member_headers)
        assert response.status_code == 200
        history = response.json()
        assert len(history) == 2
        assert history[0]["id"] > history[1]["id"]

    def test_profile_download_history(self, client, test_db, member_user, sample_videos, member_headers):
        for video in sample_videos:
            process_download(test_db, member_user.id, video.id, "original")

        assert len(client.get("/api/user/downloads", headers=member_headers).json()) == 4
        assert len(client.get("/api/user/downloads/recent?limit=1", headers=member_headers).json()) == 1


class TestResumeTokens:
    """Tokenized file URLs"""

    def test_download_url_serves_file(self, client, test_db, member_user, test_video):
        result = process_download(test_db, member_user.id, test_video.id, "original")

        response = client.get(result["downloadUrl"])
        assert response.status_code == 200
        assert response.content == b"0123456789" * 10
        assert "attachment" in response.headers["content-disposition"]

    def test_retry_does_not_charge_again(self, client, test_db, member_user, test_video):
        result = process_download(test_db, member_user.id, test_video.id, "original")
        client.get(result["downloadUrl"])
        client.get(result["downloadUrl"], headers={"Range": "bytes=0-9"})

        refreshed = test_db.query(User).filter(User.id == member_user.id).first()
        assert refreshed.downloads_remaining == 4

    def test_token_bound_to_format(self, test_db, member_user, test_video):
        result = process_download(test_db, member_user.id, test_video.id, "original")
        with pytest.raises(DownloadError) as excinfo:
            verify_resume_token(result["resumeToken"], test_video.id, "webm")
        assert excinfo.value.status_code == 403

    def test_tampered_token_is_forbidden(self, client, test_video):
        response = client.get(f"/api/videos/{test_video.id}/download/original?token=not-a-token")
        assert response.status_code == 403


class TestSecureStreaming:
    """Signed streaming tokens"""

    def test_token_round_trip(self):
        token = generate_streaming_token(7, 3)
        payload = verify_streaming_token(token)
        assert payload["videoId"] == 7
        assert payload["userId"] == 3

    def test_expired_token(self):
        token = generate_streaming_token(7, 3, expires_in=-10)
        with pytest.raises(StreamTokenError):
            verify_streaming_token(token)

    def test_purpose_is_enforced(self):
        token = generate_streaming_token(7, 3, purpose=PURPOSE_STREAM)
        with pytest.raises(StreamTokenError):
            verify_streaming_token(token, purpose=PURPOSE_DOWNLOAD)

    def test_token_signed_with_other_secret(self):
        now = int(time.time())
        forged = jwt.encode(
            {"videoId": 7, "userId": 3, "typ": PURPOSE_STREAM, "iat": now, "exp": now + 60},
            "not-the-secret",
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(StreamTokenError):
            verify_streaming_token(forged)

    def test_watermark_text(self):
        from datetime import datetime
        text = watermark_text("djnova", datetime(2024, 5, 1, 12, 0, 0))
        assert "djnova" in text
        assert "2024" in text

    def test_premium_token_requires_membership(self, client, test_video, auth_headers):
        response = client.post(f"/api/videos/{test_video.id}/secure-token", headers=auth_headers)
        assert response.status_code == 403

    def test_stream_with_range(self, client, test_video, member_headers):
        response = client.post(
            f"/api/videos/{test_video.id}/secure-token",
            json={"watermark": True},
            headers=member_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["streamUrl"].startswith("/api/secure-stream/")
        assert data["watermarkText"]

        streamed = client.get(data["streamUrl"], headers={"Range": "bytes=10-19"})
        assert streamed.status_code == 206
        assert streamed.content == b"0123456789"
        assert streamed.headers["content-range"] == "bytes 10-19/100"
        assert streamed.headers["x-watermark"]
        assert streamed.headers["cache-control"] == "private, no-store"

    def test_download_token_only_opens_download_endpoint(self, client, test_video, member_headers):
        data = client.post(
            f"/api/videos/{test_video.id}/secure-token",
            json={"purpose": "download"},
            headers=member_headers,
        ).json()

        assert data["streamUrl"].startswith("/api/secure-download/")
        assert client.get(data["streamUrl"]).status_code == 200
        assert client.get(f"/api/secure-stream/{data['token']}").status_code == 403

    def test_missing_file_is_404(self, client, test_db, test_video, test_admin, admin_headers):
        test_video.video_key = "missing.mp4"
        test_db.commit()
        token = client.post(f"/api/videos/{test_video.id}/secure-token", headers=admin_headers).json()["token"]
        assert client.get(f"/api/secure-stream/{token}").status_code == 404


class TestRangeParsing:
    """Range header handling"""

    def test_no_range(self):
        assert parse_range_header(None, 100) is None

    def test_open_ended_and_suffix(self):
        assert parse_range_header("bytes=90-", 100) == (90, 99)
        assert parse_range_header("bytes=-10", 100) == (90, 99)

    def test_end_clamped_to_size(self):
        assert parse_range_header("bytes=0-500", 100) == (0, 99)

    def test_unsatisfiable(self):
        with pytest.raises(RangeNotSatisfiable):
            parse_range_header("bytes=200-300", 100)
        with pytest.raises(RangeNotSatisfiable):
            parse_range_header("bytes=0-1,5-6", 100)
