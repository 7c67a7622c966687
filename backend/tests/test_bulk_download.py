"""
Bulk ZIP download tests
"""
import io
import os
import time
import zipfile

import pytest

from core.config import settings
from models.download import BulkDownload, BulkDownloadStatus
from services.bulk_download import (
    BulkDownloadError,
    archive_dir,
    build_readme,
    cleanup_old_archives,
    create_bulk_download,
    resolve_archive,
    sanitize_title,
)


class TestArchiveContents:
    """ZIP layout"""

    def test_sanitize_title(self):
        assert sanitize_title("Neon Tunnel: Part #2!") == "Neon_Tunnel_Part_2"

    def test_readme_lists_videos_and_credits(self):
        readme = build_readme(["Neon Tunnel", "Laser Countdown"], year=2024)
        assert "1. Neon Tunnel\n2. Laser Countdown" in readme
        assert "info@thevideopool.com" in readme
        assert "© 2024 TheVideoPool.com" in readme

    def test_archive_has_numbered_entries_and_readme(self, test_db, member_user, sample_videos):
        result = create_bulk_download(test_db, member_user.id, [v.id for v in sample_videos[:2]])

        assert result["successCount"] == 2
        assert result["downloadsUsed"] == 2
        with zipfile.ZipFile(archive_dir() / result["fileName"]) as archive:
            names = archive.namelist()
            assert names == ["01_Laser_Countdown.mp4", "02_Retro_Grid_Loop.mp4", "README.txt"]
            assert "1. Laser Countdown" in archive.read("README.txt").decode("utf-8")

    def test_archive_charges_free_and_premium_alike(self, test_db, member_user, sample_videos):
        free, premium = sample_videos[0], sample_videos[1]
        assert not free.is_premium and premium.is_premium

        result = create_bulk_download(test_db, member_user.id, [free.id, premium.id])

        test_db.refresh(member_user)
        assert result["downloadsUsed"] == member_user.downloads_used == 2
        assert result["downloadsRemaining"] == member_user.downloads_remaining == 3

    def test_missing_file_is_skipped(self, test_db, member_user, sample_videos):
        sample_videos[1].video_key = "gone.mp4"
        test_db.commit()

        result = create_bulk_download(test_db, member_user.id, [v.id for v in sample_videos[:2]])
        assert result["successCount"] == 1
        assert result["failCount"] == 1
        assert result["downloadsUsed"] == 1


class TestBulkRules:
    """Membership and credit checks"""

    def test_requires_membership(self, test_db, test_user, sample_videos):
        with pytest.raises(BulkDownloadError) as excinfo:
            create_bulk_download(test_db, test_user.id, [sample_videos[0].id])
        assert excinfo.value.status_code == 403

    def test_not_enough_credits(self, test_db, member_user, sample_videos, test_membership):
        member_user.downloads_used = test_membership.download_limit - 1
        test_db.commit()

        with pytest.raises(BulkDownloadError) as excinfo:
            create_bulk_download(test_db, member_user.id, [v.id for v in sample_videos[:2]])
        assert excinfo.value.status_code == 403
        assert "You need 2 credits but have 1 remaining" in str(excinfo.value)

    def test_duplicates_and_unknown_ids_dropped(self, test_db, member_user, sample_videos):
        first = sample_videos[0].id
        result = create_bulk_download(test_db, member_user.id, [first, first, 999])
        assert result["totalVideos"] == 1

    def test_video_cap_comes_from_settings(self, test_db, member_user, sample_videos, monkeypatch):
        monkeypatch.setattr(settings, "BULK_DOWNLOAD_MAX_VIDEOS", 2)

        with pytest.raises(BulkDownloadError) as excinfo:
            create_bulk_download(test_db, member_user.id, [v.id for v in sample_videos[:3]])
        assert excinfo.value.status_code == 400
        assert "limited to 2 videos" in str(excinfo.value)

        result = create_bulk_download(test_db, member_user.id, [v.id for v in sample_videos[:2]])
        assert result["successCount"] == 2

    def test_archive_served_to_owner_only(self, client, test_db, member_user, sample_videos, member_headers, auth_headers):
        result = client.post(
            "/api/downloads/bulk",
            json={"videoIds": [sample_videos[0].id]},
            headers=member_headers,
        ).json()

        response = client.get(result["downloadUrl"], headers=member_headers)
        assert response.status_code == 200
        assert zipfile.is_zipfile(io.BytesIO(response.content))

        assert client.get(result["downloadUrl"], headers=auth_headers).status_code == 404

        bulk = test_db.query(BulkDownload).filter(BulkDownload.id == result["id"]).first()
        assert bulk.status == BulkDownloadStatus.COMPLETED

    def test_bad_archive_name(self, test_db, member_user):
        with pytest.raises(BulkDownloadError) as excinfo:
            resolve_archive(test_db, member_user.id, "../../etc/passwd")
        assert excinfo.value.status_code == 400


class TestCleanup:
    """Expiry of archives on disk"""

    def test_only_old_bulk_archives_are_removed(self):
        directory = archive_dir()
        old_archive = directory / "bulk-download-old.zip"
        fresh_archive = directory / "bulk-download-fresh.zip"
        other_file = directory / "keep-me.zip"
        for path in (old_archive, fresh_archive, other_file):
            path.write_bytes(b"zip")

        now = time.time()
        two_days_ago = now - 48 * 3600
        os.utime(old_archive, (two_days_ago, two_days_ago))
        os.utime(other_file, (two_days_ago, two_days_ago))

        try:
            assert cleanup_old_archives(max_age_hours=settings.BULK_DOWNLOAD_MAX_AGE_HOURS, now=now) == 1
            assert not old_archive.exists()
            assert fresh_archive.exists()
            assert other_file.exists()
        finally:
            for path in (fresh_archive, other_file):
                path.unlink(missing_ok=True)
