"""
Download Service - formats, quota accounting and resumable download tokens
"""
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional
from sqlalchemy.orm import Session

from core.config import settings
from models.user import User
from models.video import Video
from models.download import Download
from services.secure_streaming import (
    PURPOSE_RESUME,
    StreamTokenError,
    generate_streaming_token,
    verify_streaming_token,
)

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Download rejected; status_code is the HTTP status the API should answer with"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# Offered renditions. "original" takes the source video's resolution.
DOWNLOAD_FORMATS: List[Dict[str, Any]] = [
    {"id": "original", "name": "Original Quality", "resolution": None, "extension": "mp4", "filesize": 450 * 1024 * 1024, "bitrate": 8500},
    {"id": "high", "name": "High Quality", "resolution": "1080p", "extension": "mp4", "filesize": 250 * 1024 * 1024, "bitrate": 5000},
    {"id": "medium", "name": "Medium Quality", "resolution": "720p", "extension": "mp4", "filesize": 125 * 1024 * 1024, "bitrate": 2500},
    {"id": "low", "name": "Low Quality", "resolution": "480p", "extension": "mp4", "filesize": 60 * 1024 * 1024, "bitrate": 1000},
    {"id": "webm", "name": "WebM Format", "resolution": "720p", "extension": "webm", "filesize": 110 * 1024 * 1024, "bitrate": 2000},
    {"id": "looped-mp4", "name": "Looped MP4", "resolution": "720p", "extension": "mp4", "filesize": 35 * 1024 * 1024, "bitrate": 2500},
]


def get_available_formats(video: Video) -> List[Dict[str, Any]]:
    """Formats offered for a video, with the original's real resolution filled in"""
    formats = []
    for fmt in DOWNLOAD_FORMATS:
        entry = dict(fmt)
        if entry["id"] == "original":
            entry["resolution"] = video.resolution or "1080p"
            if video.file_size:
                entry["filesize"] = video.file_size
        formats.append(entry)
    return formats


def find_format(video: Video, format_id: str) -> Optional[Dict[str, Any]]:
    for fmt in get_available_formats(video):
        if fmt["id"] == format_id:
            return fmt
    return None


def record_download(
    db: Session,
    user: User,
    video: Video,
    format_id: Optional[str] = None,
    charge_credit: Optional[bool] = None,
) -> Download:
    """
    Charge one download to a user. Caller commits.

    Increments the video's downloadCount and the user's downloadsUsed, and takes
    one credit from downloadsRemaining without going below zero. Single downloads
    charge a credit for premium videos only; bulk archives charge every video.
    """
    if charge_credit is None:
        charge_credit = video.is_premium

    download = Download(user_id=user.id, video_id=video.id, format_id=format_id)
    db.add(download)

    video.download_count = (video.download_count or 0) + 1
    user.downloads_used = (user.downloads_used or 0) + 1

    if charge_credit and user.downloads_remaining is not None:
        user.downloads_remaining = max(0, user.downloads_remaining - 1)

    return download


def process_download(db: Session, user_id: int, video_id: int, format_id: str) -> Dict[str, Any]:
    """
    Validate and record a download, returning a resumable download URL

    Raises:
        DownloadError: 404 unknown user/video, 403 membership or quota, 400 bad format
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise DownloadError("User not found", status_code=404)

    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise DownloadError("Video not found", status_code=404)

    if video.is_premium and not user.has_active_membership():
        raise DownloadError("This video requires a premium membership", status_code=403)

    if user.downloads_remaining == 0:
        raise DownloadError("You have used all your download credits for this period", status_code=403)

    fmt = find_format(video, format_id)
    if not fmt:
        raise DownloadError("Invalid format selected", status_code=400)

    download = record_download(db, user, video, format_id)
    db.commit()
    db.refresh(download)

    logger.info(f"⬇️ Download recorded: user_id={user.id}, video_id={video.id}, format={format_id}")

    token = generate_streaming_token(
        video.id,
        user.id,
        purpose=PURPOSE_RESUME,
        expires_in=settings.DOWNLOAD_TOKEN_TTL_SECONDS,
        formatId=format_id,
    )

    return {
        "success": True,
        "downloadId": download.id,
        "downloadUrl": f"/api/videos/{video.id}/download/{format_id}?token={token}",
        "resumeToken": token,
        "format": fmt,
        "downloadsRemaining": user.downloads_remaining,
        "downloadsUsed": user.downloads_used,
    }


def verify_resume_token(token: str, video_id: int, format_id: str) -> Dict[str, Any]:
    """
    Check a resume token belongs to this video and format

    Raises:
        DownloadError: 403 when the token is invalid, expired or for another video
    """
    try:
        payload = verify_streaming_token(token, purpose=PURPOSE_RESUME)
    except StreamTokenError as e:
        raise DownloadError(f"Invalid or expired download token: {e}", status_code=403)

    if payload["videoId"] != video_id or payload.get("formatId") != format_id:
        raise DownloadError("Invalid or expired download token", status_code=403)

    return payload


def download_file_name(video: Video, fmt: Dict[str, Any]) -> str:
    return f"{video.title}_{fmt['resolution']}.{fmt['extension']}"


def get_download_history(db: Session, user_id: int, limit: Optional[int] = 20) -> List[Download]:
    """Newest first; limit=None returns the full history"""
    return (
        db.query(Download)
        .filter(Download.user_id == user_id)
        .order_by(Download.downloaded_at.desc(), Download.id.desc())
        .limit(limit)
        .all()
    )


def reset_quota(user: User, download_limit: int, now: Optional[datetime] = None) -> None:
    """Start a fresh quota period"""
    user.downloads_remaining = download_limit
    user.downloads_used = 0
    user.updated_at = now or datetime.utcnow()
