"""
Bulk Upload Service
Ingest sessions: store uploaded files, probe them, suggest tags and turn
processed files into catalog videos
"""
import os
import re
import uuid
import logging
import tempfile
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session

from core.config import settings
from models.video import Video, Category, Tag, VideoTag
from models.bulk_upload import BulkUploadSession, BulkUploadFile, UploadSessionStatus, UploadFileStatus
from services import ai_service, copyright_service
from services.storage import storage_service, StorageError
from services.ffmpeg_service import ffmpeg_service, FFmpegError, FFprobeError

logger = logging.getLogger(__name__)

MAX_SUGGESTED_TAGS = 15

# Filename words that map to catalog tags when AI tagging is unavailable
FILENAME_KEYWORDS = {
    "loop": "loop",
    "vj": "vj",
    "intro": "intro",
    "outro": "outro",
    "edm": "edm",
    "house": "house",
    "techno": "techno",
    "trap": "trap",
    "hiphop": "hip hop",
    "hip": "hip hop",
    "party": "party",
    "club": "club",
    "wedding": "wedding",
    "neon": "neon",
    "abstract": "abstract",
    "tunnel": "tunnel",
    "retro": "retro",
    "countdown": "countdown",
    "remix": "remix",
    "transition": "transition",
    "4k": "4k",
}


class BulkUploadError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def slugify_tag(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def title_from_filename(filename: str) -> str:
    """neon_tunnel-loop.mp4 -> Neon Tunnel Loop"""
    stem = Path(filename).stem
    return re.sub(r"[_-]+", " ", stem).strip().title() or "Untitled"


def keyword_tags(filename: str) -> List[str]:
    words = re.split(r"[^a-z0-9]+", Path(filename).stem.lower())
    tags = []
    for word in words:
        tag = FILENAME_KEYWORDS.get(word)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def suggest_tags(filename: str, metadata: Optional[Dict[str, Any]] = None) -> List[str]:
    """
    5-10 tags from Gemini, capped at 15; keywords from the filename when
    Gemini is not configured or returns nothing usable
    """
    if ai_service.is_enabled():
        metadata = metadata or {}
        prompt = (
            "You are a DJ video tagging expert. Suggest 5-10 tags for DJ visuals "
            "(genre, mood, visual style, use case).\n"
            f"Title: {title_from_filename(filename)}\n"
            f"Duration: {metadata.get('duration', 'unknown')} seconds\n"
            f"Resolution: {metadata.get('resolution', 'unknown')}\n"
            "Return only a JSON array of tags with no explanations."
        )
        parsed = ai_service.extract_json(ai_service.generate_text(prompt))
        if isinstance(parsed, list):
            tags = [tag.strip().lower() for tag in parsed if isinstance(tag, str) and tag.strip()]
            if tags:
                return tags[:MAX_SUGGESTED_TAGS]

    return keyword_tags(filename)


# ============================================
# Sessions
# ============================================

def create_session(
    db: Session,
    user_id: int,
    name: str,
    default_category_id: Optional[int] = None,
    default_tags: Optional[List[str]] = None,
    notes: Optional[str] = None
) -> BulkUploadSession:
    session = BulkUploadSession(
        user_id=user_id,
        name=name,
        status=UploadSessionStatus.IN_PROGRESS,
        default_category_id=default_category_id,
        default_tags=default_tags or [],
        notes=notes,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"📤 Bulk upload session {session.id} created by user {user_id}")
    return session


def list_sessions(db: Session, user_id: int) -> List[BulkUploadSession]:
    return (
        db.query(BulkUploadSession)
        .filter(BulkUploadSession.user_id == user_id)
        .order_by(desc(BulkUploadSession.created_at), desc(BulkUploadSession.id))
        .all()
    )


def get_session(db: Session, session_id: int, user_id: int) -> BulkUploadSession:
    session = (
        db.query(BulkUploadSession)
        .filter(BulkUploadSession.id == session_id, BulkUploadSession.user_id == user_id)
        .first()
    )
    if not session:
        raise BulkUploadError("Upload session not found", status_code=404)
    return session


def add_file(
    db: Session,
    session: BulkUploadSession,
    filename: str,
    file_data: BinaryIO,
    content_type: Optional[str] = None
) -> BulkUploadFile:
    """Store one upload for the session. Caller commits."""
    if session.status != UploadSessionStatus.IN_PROGRESS:
        raise BulkUploadError(f"Session is {session.status.value}")

    extension = Path(filename).suffix.lower() or ".mp4"
    stored_key = f"bulk/{session.id}/{uuid.uuid4().hex}{extension}"

    file_data.seek(0, os.SEEK_END)
    file_size = file_data.tell()
    file_data.seek(0)

    storage_service.upload_file(
        file_data,
        stored_key,
        settings.MINIO_BUCKET_UPLOADS,
        content_type=content_type or "application/octet-stream",
    )

    upload = BulkUploadFile(
        session_id=session.id,
        original_filename=filename,
        stored_key=stored_key,
        file_size=file_size,
        mime_type=content_type,
        status=UploadFileStatus.PENDING,
    )
    db.add(upload)
    session.total_files = (session.total_files or 0) + 1
    return upload


def cancel_session(db: Session, session: BulkUploadSession) -> BulkUploadSession:
    """Drop stored files that never became videos and mark the session cancelled"""
    for upload in session.files:
        if upload.video_id is not None:
            continue
        try:
            storage_service.delete_file(upload.stored_key, settings.MINIO_BUCKET_UPLOADS)
        except StorageError as e:
            logger.warning(f"⚠️ Could not delete {upload.stored_key}: {e}")

    session.status = UploadSessionStatus.CANCELLED
    db.commit()
    db.refresh(session)
    return session


# ============================================
# Processing
# ============================================

def process_file(db: Session, upload: BulkUploadFile) -> bool:
    """
    Probe one pending file, capture a thumbnail and a preview clip, and suggest tags.
    Returns True when the file completed, False when it failed.
    """
    upload.status = UploadFileStatus.PROCESSING
    db.commit()

    local_path = None
    is_temp = False
    try:
        local_path, is_temp = storage_service.get_local_path(upload.stored_key, settings.MINIO_BUCKET_UPLOADS)
        metadata = ffmpeg_service.get_video_metadata(local_path)

        thumb_key = f"bulk/{upload.session_id}/{upload.id}.jpg"
        preview_key = f"previews/{upload.session_id}-{upload.id}.mp4"
        with tempfile.TemporaryDirectory() as tmp:
            thumb_path = os.path.join(tmp, "thumbnail.jpg")
            ffmpeg_service.generate_thumbnail(local_path, thumb_path, timestamp=min(2.0, metadata["duration"] / 2))
            metadata["thumbnailUrl"] = storage_service.upload_file_from_path(
                thumb_path, thumb_key, settings.MINIO_BUCKET_THUMBNAILS, content_type="image/jpeg"
            )

            preview_path = os.path.join(tmp, "preview.mp4")
            ffmpeg_service.generate_preview(local_path, preview_path, duration=min(10.0, metadata["duration"]))
            metadata["previewUrl"] = storage_service.upload_file_from_path(
                preview_path, preview_key, settings.MINIO_BUCKET_VIDEOS, content_type="video/mp4"
            )
        metadata["thumbnailKey"] = thumb_key

        upload.file_metadata = metadata
        upload.suggested_tags = suggest_tags(upload.original_filename, metadata)
        upload.status = UploadFileStatus.COMPLETED
        upload.error_message = None
        return True
    except (StorageError, FFmpegError, FFprobeError) as e:
        logger.error(f"❌ Processing {upload.original_filename} failed: {str(e)}")
        upload.status = UploadFileStatus.FAILED
        upload.error_message = str(e)
        return False
    finally:
        db.commit()
        if is_temp and local_path:
            os.unlink(local_path)


def process_session(db: Session, session_id: int) -> Dict[str, int]:
    """Process every pending file and roll the results into the session counters"""
    session = db.query(BulkUploadSession).filter(BulkUploadSession.id == session_id).first()
    if not session:
        raise BulkUploadError("Upload session not found", status_code=404)

    if session.status == UploadSessionStatus.CANCELLED:
        logger.info(f"Session {session_id} was cancelled, skipping processing")
        return {"processed": 0, "successful": 0, "failed": 0}

    pending = [f for f in session.files if f.status == UploadFileStatus.PENDING]
    successful = failed = 0
    for upload in pending:
        if process_file(db, upload):
            successful += 1
        else:
            failed += 1

    session.processed_files = (session.processed_files or 0) + successful + failed
    session.successful_files = (session.successful_files or 0) + successful
    session.failed_files = (session.failed_files or 0) + failed
    if session.total_files and session.processed_files >= session.total_files:
        session.status = UploadSessionStatus.COMPLETED
    db.commit()

    logger.info(f"✅ Session {session_id} processed: {successful} ok, {failed} failed")
    return {"processed": successful + failed, "successful": successful, "failed": failed}


# ============================================
# Import
# ============================================

def get_or_create_tag(db: Session, name: str, category_id: Optional[int] = None) -> Tag:
    slug = slugify_tag(name)
    tag = db.query(Tag).filter(Tag.slug == slug).first()
    if tag is None:
        tag = Tag(name=name.strip(), slug=slug, category_id=category_id, usage_count=0)
        db.add(tag)
        db.flush()
    tag.usage_count = (tag.usage_count or 0) + 1
    return tag


def create_video_from_file(db: Session, file_id: int, user_id: int, data: Dict[str, Any]) -> Video:
    """
    Turn a processed file into a catalog video with tags

    data keys: title, description, category_id, is_premium, is_loop, tags
    """
    upload = (
        db.query(BulkUploadFile)
        .join(BulkUploadSession, BulkUploadFile.session_id == BulkUploadSession.id)
        .filter(BulkUploadFile.id == file_id, BulkUploadSession.user_id == user_id)
        .first()
    )
    if not upload:
        raise BulkUploadError("Upload file not found", status_code=404)
    if upload.status != UploadFileStatus.COMPLETED:
        raise BulkUploadError(f"File is {upload.status.value}, only completed files can be imported", status_code=409)

    session = upload.session
    metadata = upload.file_metadata or {}
    category_id = data.get("category_id") or session.default_category_id
    if category_id and not db.query(Category).filter(Category.id == category_id).first():
        raise BulkUploadError("Category not found", status_code=404)

    extension = Path(upload.stored_key).suffix or ".mp4"
    video_key = f"videos/{uuid.uuid4().hex}{extension}"
    local_path, is_temp = storage_service.get_local_path(upload.stored_key, settings.MINIO_BUCKET_UPLOADS)
    try:
        video_url = storage_service.upload_file_from_path(
            local_path, video_key, settings.MINIO_BUCKET_VIDEOS, content_type=upload.mime_type or "video/mp4"
        )
    finally:
        if is_temp:
            os.unlink(local_path)

    video = Video(
        title=data.get("title") or title_from_filename(upload.original_filename),
        description=data.get("description"),
        video_key=video_key,
        video_url=video_url,
        thumbnail_url=metadata.get("thumbnailUrl"),
        preview_url=metadata.get("previewUrl"),
        duration=metadata.get("duration"),
        resolution=metadata.get("resolution"),
        file_size=upload.file_size,
        category_id=category_id,
        is_premium=data.get("is_premium", True),
        is_loop=data.get("is_loop", False),
        is_new=True,
    )
    db.add(video)
    db.flush()

    tag_names = data.get("tags")
    if tag_names is None:
        tag_names = (upload.suggested_tags or []) + (session.default_tags or [])

    seen = set()
    for name in tag_names:
        if not name or not slugify_tag(name) or slugify_tag(name) in seen:
            continue
        seen.add(slugify_tag(name))
        tag = get_or_create_tag(db, name, category_id)
        db.add(VideoTag(video_id=video.id, tag_id=tag.id, added_by_id=user_id))

    if category_id:
        category = db.query(Category).filter(Category.id == category_id).first()
        category.item_count = (category.item_count or 0) + 1

    upload.video_id = video.id
    upload.status = UploadFileStatus.IMPORTED
    db.commit()
    db.refresh(video)

    try:
        storage_service.delete_file(upload.stored_key, settings.MINIO_BUCKET_UPLOADS)
    except StorageError as e:
        logger.warning(f"⚠️ Could not remove imported upload {upload.stored_key}: {e}")

    copyright_service.check_copyright(db, video.id)

    logger.info(f"🎞️ Imported upload {upload.id} as video {video.id} with {len(seen)} tags")
    return video
