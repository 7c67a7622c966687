"""
Bulk upload tests
"""
import pytest

from models.bulk_upload import BulkUploadFile, UploadFileStatus
from models.moderation import ContentAnalysisResult
from models.user import UserRole
from models.video import Tag, Video, VideoTag
from services.bulk_upload_service import keyword_tags, slugify_tag, suggest_tags, title_from_filename
from services.ffmpeg_service import FFprobeError, parse_probe_metadata, resolution_label


@pytest.fixture
def uploader_headers(staff_headers):
    return staff_headers(UserRole.UPLOADER)


def _upload(client, headers, session_id, *names):
    files = [("files", (name, b"fake video bytes", "video/mp4")) for name in names]
    return client.post(f"/api/admin/bulk-upload/sessions/{session_id}/files", files=files, headers=headers)


class TestFilenameHelpers:
    """Titles and tags from filenames"""

    def test_title(self):
        assert title_from_filename("neon_tunnel-loop.mp4") == "Neon Tunnel Loop"
        assert title_from_filename("___.mov") == "Untitled"

    def test_slugify(self):
        assert slugify_tag("Hip Hop!") == "hip-hop"

    def test_keyword_tags(self):
        assert keyword_tags("EDM_neon-loop_4K.mp4") == ["edm", "neon", "loop", "4k"]
        assert keyword_tags("hip_hip_hiphop.mp4") == ["hip hop"]

    def test_suggest_without_ai_uses_keywords(self):
        assert suggest_tags("wedding_intro.mov", {"duration": 10}) == ["wedding", "intro"]


class TestSessions:
    """Upload sessions"""

    def test_requires_uploader(self, client, auth_headers):
        assert client.post("/api/admin/bulk-upload/sessions", json={"name": "x"}, headers=auth_headers).status_code == 403

    def test_upload_files(self, client, test_db, uploader_headers):
        session = client.post("/api/admin/bulk-upload/sessions", json={"name": "Friday batch"}, headers=uploader_headers).json()
        assert session["status"] == "in-progress"

        response = _upload(client, uploader_headers, session["id"], "neon_tunnel-loop.mp4", "smoke.mov")
        assert response.status_code == 201
        assert response.json()["session"]["totalFiles"] == 2
        assert [f["status"] for f in response.json()["files"]] == ["pending", "pending"]

        detail = client.get(f"/api/admin/bulk-upload/sessions/{session['id']}", headers=uploader_headers).json()
        assert [f["originalFilename"] for f in detail["files"]] == ["neon_tunnel-loop.mp4", "smoke.mov"]

    def test_sessions_are_private(self, client, uploader_headers, admin_headers):
        session = client.post("/api/admin/bulk-upload/sessions", json={"name": "mine"}, headers=uploader_headers).json()
        assert client.get(f"/api/admin/bulk-upload/sessions/{session['id']}", headers=admin_headers).status_code == 404

    def test_cancelled_session_rejects_files(self, client, uploader_headers):
        session = client.post("/api/admin/bulk-upload/sessions", json={"name": "oops"}, headers=uploader_headers).json()
        cancelled = client.post(f"/api/admin/bulk-upload/sessions/{session['id']}/cancel", headers=uploader_headers).json()
        assert cancelled["status"] == "cancelled"

        assert _upload(client, uploader_headers, session["id"], "late.mp4").status_code == 400
        assert client.post(f"/api/admin/bulk-upload/sessions/{session['id']}/process", headers=uploader_headers).status_code == 400


class TestImport:
    """Processed files become videos"""

    def _processed_file(self, client, test_db, headers, category_id=None):
        session = client.post(
            "/api/admin/bulk-upload/sessions",
            json={"name": "batch", "defaultCategoryId": category_id, "defaultTags": ["club"]},
            headers=headers,
        ).json()
        file_id = _upload(client, headers, session["id"], "neon_tunnel-loop.mp4").json()["files"][0]["id"]

        upload = test_db.query(BulkUploadFile).filter(BulkUploadFile.id == file_id).one()
        upload.status = UploadFileStatus.COMPLETED
        upload.file_metadata = {"duration": 12, "resolution": "1080p"}
        upload.suggested_tags = ["neon", "loop", "Neon"]
        test_db.commit()
        return file_id

    def test_pending_file_cannot_be_imported(self, client, uploader_headers):
        session = client.post("/api/admin/bulk-upload/sessions", json={"name": "b"}, headers=uploader_headers).json()
        file_id = _upload(client, uploader_headers, session["id"], "clip.mp4").json()["files"][0]["id"]

        response = client.post(f"/api/admin/bulk-upload/files/{file_id}/create-video", json={}, headers=uploader_headers)
        assert response.status_code == 409

    def test_import_creates_tagged_video(self, client, test_db, test_category, uploader_headers):
        file_id = self._processed_file(client, test_db, uploader_headers, test_category.id)

        response = client.post(f"/api/admin/bulk-upload/files/{file_id}/create-video", json={}, headers=uploader_headers)
        assert response.status_code == 201
        video = response.json()["video"]
        assert video["title"] == "Neon Tunnel Loop"
        assert video["resolution"] == "1080p"
        assert video["categoryId"] == test_category.id

        tag_names = sorted(
            name for (name,) in test_db.query(Tag.name).join(VideoTag, VideoTag.tag_id == Tag.id)
            .filter(VideoTag.video_id == video["id"])
        )
        assert tag_names == ["club", "loop", "neon"]

        test_db.expire_all()
        assert test_db.query(BulkUploadFile).filter(BulkUploadFile.id == file_id).one().status == UploadFileStatus.IMPORTED
        assert test_db.query(ContentAnalysisResult).filter(ContentAnalysisResult.video_id == video["id"]).count() == 1

    def test_import_twice_conflicts(self, client, test_db, uploader_headers):
        file_id = self._processed_file(client, test_db, uploader_headers)
        url = f"/api/admin/bulk-upload/files/{file_id}/create-video"

        assert client.post(url, json={"title": "Custom"}, headers=uploader_headers).status_code == 201
        assert client.post(url, json={}, headers=uploader_headers).status_code == 409
        assert test_db.query(Video).count() == 1


class TestProbeParsing:
    """ffprobe output to catalog metadata"""

    def test_parse_probe(self):
        probe = {
            "format": {"duration": "12.5", "bit_rate": "8000000", "size": "12500000"},
            "streams": [
                {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001"},
                {"codec_type": "audio", "codec_name": "aac"},
            ],
        }
        metadata = parse_probe_metadata(probe)
        assert metadata["duration"] == 12.5
        assert metadata["resolution"] == "1080p"
        assert metadata["fps"] == 29.97
        assert metadata["audio_codec"] == "aac"

    def test_vertical_video_uses_short_side(self):
        assert resolution_label(1080, 1920) == "1080p"
        assert resolution_label(3840, 2160) == "4K"

    def test_audio_only_is_rejected(self):
        with pytest.raises(FFprobeError):
            parse_probe_metadata({"format": {}, "streams": [{"codec_type": "audio"}]})
