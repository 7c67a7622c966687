"""
Bulk Download Service
Packs several videos into one ZIP archive and charges the user's credits
"""
import os
import re
import time
import uuid
import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional
from sqlalchemy.orm import Session

from core.config import settings
from models.user import User
from models.membership import Membership
from models.video import Video
from models.download import BulkDownload, BulkDownloadItem, BulkDownloadStatus
from services.download_service import record_download
from services.storage import storage_service, StorageError

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "bulk-download-"
ARCHIVE_NAME_RE = re.compile(r"^bulk-download-[0-9a-f-]{36}\.zip$")


class BulkDownloadError(Exception):
    """Bulk download rejected; status_code is the HTTP status to answer with"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def archive_dir() -> Path:
    path = Path(settings.BULK_DOWNLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def sanitize_title(title: str) -> str:
    """Strip everything except word characters, spaces, dots and dashes; spaces become underscores"""
    return re.sub(r"\s+", "_", re.sub(r"[^\w\s.-]", "", title))


def archive_entry_name(index: int, video: Video) -> str:
    """Numbered entry name, e.g. 03_Neon_Tunnel.mp4"""
    source = video.video_key or video.video_url or ""
    extension = source.rsplit(".", 1)[-1] if "." in source else "mp4"
    return f"{index + 1:02d}_{sanitize_title(video.title)}.{extension}"


def build_readme(titles: List[str], year: Optional[int] = None) -> str:
    year = year or datetime.utcnow().year
    listing = "\n".join(f"{i + 1}. {title}" for i, title in enumerate(titles))
    return (
        "# Bulk Download from TheVideoPool.com\n"
        "\n"
        "This download package contains the following videos:\n"
        f"{listing}\n"
        "\n"
        "Files are organized by number for easy sorting and playback.\n"
        "\n"
        "For support, contact info@thevideopool.com\n"
        "\n"
        f"© {year} TheVideoPool.com - All rights reserved\n"
    )


def create_bulk_download(db: Session, user_id: int, video_ids: List[int]) -> Dict[str, Any]:
    """
    Build a ZIP of the requested videos for one user

    Raises:
        BulkDownloadError: membership, credit or availability problems
    """
    if not video_ids:
        raise BulkDownloadError("No videos specified for bulk download")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise BulkDownloadError("User not found", status_code=404)

    if not user.has_active_membership():
        raise BulkDownloadError("Active membership required for bulk downloads", status_code=403)

    # Preserve request order, drop duplicates and unknown ids
    seen = set()
    videos = []
    for video_id in video_ids:
        if video_id in seen:
            continue
        seen.add(video_id)
        video = db.query(Video).filter(Video.id == video_id).first()
        if video:
            videos.append(video)

    if not videos:
        raise BulkDownloadError("No accessible videos found for bulk download")

    if len(videos) > settings.BULK_DOWNLOAD_MAX_VIDEOS:
        raise BulkDownloadError(f"A bulk download is limited to {settings.BULK_DOWNLOAD_MAX_VIDEOS} videos")

    membership = db.query(Membership).filter(Membership.id == user.membership_id).first()
    if not membership:
        raise BulkDownloadError("Membership not found", status_code=404)

    credits = membership.download_limit - (user.downloads_used or 0)
    if credits < len(videos):
        raise BulkDownloadError(
            f"Not enough download credits. You need {len(videos)} credits but have {max(credits, 0)} remaining.",
            status_code=403,
        )

    bulk = BulkDownload(user_id=user.id, status=BulkDownloadStatus.PROCESSING, total_videos=len(videos))
    db.add(bulk)
    db.flush()

    file_name = f"{ARCHIVE_PREFIX}{uuid.uuid4()}.zip"
    zip_path = archive_dir() / file_name

    included: List[Video] = []
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=5) as archive:
        for index, video in enumerate(videos):
            item = BulkDownloadItem(bulk_download_id=bulk.id, video_id=video.id)
            try:
                local_path, is_temp = storage_service.get_local_path(video.video_key or "", settings.MINIO_BUCKET_VIDEOS)
                try:
                    archive.write(local_path, arcname=archive_entry_name(index, video))
                finally:
                    if is_temp:
                        os.unlink(local_path)
            except (StorageError, OSError) as e:
                logger.warning(f"⚠️ Skipping video {video.id} in bulk download: {e}")
                item.status = "failed"
                item.error_message = str(e)
                db.add(item)
                continue

            item.status = "included"
            db.add(item)
            included.append(video)

        if included:
            archive.writestr("README.txt", build_readme([v.title for v in included]))

    if not included:
        zip_path.unlink(missing_ok=True)
        bulk.status = BulkDownloadStatus.FAILED
        bulk.fail_count = len(videos)
        bulk.completed_at = datetime.utcnow()
        db.commit()
        raise BulkDownloadError("None of the requested videos could be packaged", status_code=500)

    for video in included:
        record_download(db, user, video, format_id="bulk", charge_credit=True)

    bulk.status = BulkDownloadStatus.COMPLETED
    bulk.success_count = len(included)
    bulk.fail_count = len(videos) - len(included)
    bulk.file_name = file_name
    bulk.completed_at = datetime.utcnow()
    db.commit()

    logger.info(f"📦 Bulk download {file_name} for user {user.id}: {len(included)}/{len(videos)} videos")

    return {
        "id": bulk.id,
        "fileName": file_name,
        "downloadUrl": f"/api/downloads/bulk/{file_name}",
        "totalVideos": len(videos),
        "successCount": len(included),
        "failCount": len(videos) - len(included),
        "downloadsUsed": user.downloads_used,
        "downloadsRemaining": user.downloads_remaining,
    }


def resolve_archive(db: Session, user_id: int, file_name: str) -> Path:
    """
    Locate an archive owned by the user

    Raises:
        BulkDownloadError: 400 bad name, 404 unknown or expired archive
    """
    if not ARCHIVE_NAME_RE.match(file_name):
        raise BulkDownloadError("Invalid bulk download file name")

    bulk = (
        db.query(BulkDownload)
        .filter(BulkDownload.file_name == file_name, BulkDownload.user_id == user_id)
        .first()
    )
    path = archive_dir() / file_name
    if not bulk or not path.is_file():
        raise BulkDownloadError(f"Bulk download file not found: {file_name}", status_code=404)

    return path


def cleanup_old_archives(max_age_hours: Optional[float] = None, now: Optional[float] = None) -> int:
    """
    Delete bulk-download-* archives older than max_age_hours

    Returns:
        Number of files deleted
    """
    max_age_hours = settings.BULK_DOWNLOAD_MAX_AGE_HOURS if max_age_hours is None else max_age_hours
    now = now or time.time()
    deleted = 0

    for path in archive_dir().iterdir():
        if not path.is_file() or not path.name.startswith(ARCHIVE_PREFIX):
            continue

        age_hours = (now - path.stat().st_mtime) / 3600
        if age_hours > max_age_hours:
            path.unlink()
            deleted += 1

    if deleted:
        logger.info(f"🧹 Removed {deleted} expired bulk download archives")
    return deleted
