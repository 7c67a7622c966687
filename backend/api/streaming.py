"""
Token-authenticated streaming endpoints
The token in the path is the only credential, so players can use the URL directly
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Header
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from models.user import User
from models.video import Video
from services.secure_streaming import (
    PURPOSE_DOWNLOAD,
    PURPOSE_STREAM,
    StreamTokenError,
    verify_streaming_token,
    watermark_text,
)
from services.media_stream import video_file_response
from services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


def _serve(db: Session, token: str, purpose: str, range_header: Optional[str], disposition: str):
    try:
        payload = verify_streaming_token(token, purpose=purpose)
    except StreamTokenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    video = db.query(Video).filter(Video.id == payload["videoId"]).first()
    if not video:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )

    headers = {"Cache-Control": "private, no-store"}
    if payload.get("watermarked"):
        user = db.query(User).filter(User.id == payload["userId"]).first()
        if user:
            headers["X-Watermark"] = watermark_text(user.username)

    try:
        return video_file_response(
            video.video_key,
            range_header,
            f"{video.title}.mp4",
            disposition=disposition,
            extra_headers=headers,
        )
    except StorageError as e:
        logger.error(f"❌ Stream source missing for video {video.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video file not found"
        )


@router.get("/secure-stream/{token}")
async def secure_stream(
    token: str,
    range: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Inline playback with Range support"""
    return _serve(db, token, PURPOSE_STREAM, range, "inline")


@router.get("/secure-download/{token}")
async def secure_download(
    token: str,
    range: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Attachment download; only accepts download-purpose tokens"""
    return _serve(db, token, PURPOSE_DOWNLOAD, range, "attachment")
