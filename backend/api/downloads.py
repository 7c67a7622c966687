"""
Download API endpoints
Formats, single downloads, history and bulk ZIP archives
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query, Header
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List

from core.database import get_db
from core.security import get_current_user
from models.user import User
from models.video import Video
from services.download_service import (
    DownloadError,
    get_available_formats,
    get_download_history,
    process_download,
)
from services.bulk_download import BulkDownloadError, create_bulk_download, resolve_archive
from services.media_stream import build_file_response

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class InitiateDownloadRequest(BaseModel):
    videoId: int
    formatId: str = "original"


class BulkDownloadRequest(BaseModel):
    videoIds: List[int] = Field(..., min_length=1)


# ============================================
# Single Downloads
# ============================================

@router.get("/formats/{video_id}")
async def list_formats(video_id: int, db: Session = Depends(get_db)):
    """Renditions offered for a video"""
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )
    return {"videoId": video.id, "formats": get_available_formats(video)}


@router.post("/initiate")
async def initiate_download(
    request: InitiateDownloadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Charge one download credit and return the download URL

    Returns 403 when a premium video needs a membership or credits ran out
    """
    try:
        return process_download(db, current_user.id, request.videoId, request.formatId)
    except DownloadError as e:
        logger.warning(f"⚠️ Download refused for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/history")
async def download_history(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    downloads = get_download_history(db, current_user.id, limit=limit)
    return [d.to_dict(include_video=True) for d in downloads]


# ============================================
# Bulk Downloads
# ============================================

@router.post("/bulk")
async def bulk_download(
    request: BulkDownloadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Package up to BULK_DOWNLOAD_MAX_VIDEOS videos into one ZIP archive
    Each included video costs one credit
    """
    try:
        return create_bulk_download(db, current_user.id, request.videoIds)
    except BulkDownloadError as e:
        logger.warning(f"⚠️ Bulk download refused for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/bulk/{file_name}")
async def get_bulk_archive(
    file_name: str,
    range: Optional[str] = Header(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Serve an archive to the user who requested it"""
    try:
        path = resolve_archive(db, current_user.id, file_name)
    except BulkDownloadError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return build_file_response(str(path), range, file_name)
