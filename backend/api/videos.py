"""
Public Video API endpoints
Catalog listing, featured rails, details, previews, downloads and stream tokens
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query, Header
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from pydantic import BaseModel, Field
from typing import Optional, List

from core.config import settings
from core.database import get_db
from core.security import get_current_user
from models.user import User
from models.video import Video, Category
from services.download_service import (
    DownloadError,
    process_download,
    verify_resume_token,
    find_format,
    download_file_name,
)
from services.secure_streaming import generate_streaming_token, watermark_text, PURPOSE_STREAM, PURPOSE_DOWNLOAD
from services.media_stream import video_file_response
from services.storage import StorageError
from services.recommendation_service import get_similar_videos

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_ORDERS = {
    "newest": [desc(Video.created_at), desc(Video.id)],
    "oldest": [Video.created_at, Video.id],
    "popular": [desc(Video.download_count), desc(Video.id)],
    "title": [Video.title],
}


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class VideoListResponse(BaseModel):
    """Paginated video list response"""
    videos: List[dict]
    total: int
    page: int
    limit: int
    totalPages: int


class DownloadRequest(BaseModel):
    formatId: str = "original"


class SecureTokenRequest(BaseModel):
    watermark: bool = False
    purpose: str = Field("stream", pattern="^(stream|download)$")


class SecureTokenResponse(BaseModel):
    token: str
    streamUrl: str
    expiresIn: int
    watermarkText: Optional[str] = None


# ============================================
# Helpers
# ============================================

def get_video_or_404(db: Session, video_id: int) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Video with ID {video_id} not found"
        )
    return video


def resolve_category(db: Session, category: str) -> Optional[Category]:
    """Category by numeric id or slug"""
    if category.isdigit():
        return db.query(Category).filter(Category.id == int(category)).first()
    return db.query(Category).filter(Category.slug == category).first()


# ============================================
# Public Video Endpoints
# ============================================

@router.get("", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(12, ge=1, le=100, description="Items per page"),
    category: Optional[str] = Query(None, description="Category ID or slug"),
    search: Optional[str] = Query(None, description="Search in title and description"),
    premium: Optional[bool] = Query(None),
    loop: Optional[bool] = Query(None),
    sort: str = Query("newest", pattern="^(newest|oldest|popular|title)$"),
    db: Session = Depends(get_db)
):
    """
    List videos with optional filters

    Filters:
    - category: id or slug
    - search: substring of title or description
    - premium / loop: flags
    - sort: newest, oldest, popular or title
    """
    query = db.query(Video)

    if category:
        found = resolve_category(db, category)
        if not found:
            return VideoListResponse(videos=[], total=0, page=page, limit=limit, totalPages=0)
        query = query.filter(Video.category_id == found.id)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Video.title.ilike(pattern), Video.description.ilike(pattern)))

    if premium is not None:
        query = query.filter(Video.is_premium.is_(premium))

    if loop is not None:
        query = query.filter(Video.is_loop.is_(loop))

    total = query.count()
    videos = (
        query.order_by(*SORT_ORDERS[sort])
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return VideoListResponse(
        videos=[video.to_dict(include_category=True) for video in videos],
        total=total,
        page=page,
        limit=limit,
        totalPages=(total + limit - 1) // limit,
    )


@router.get("/featured")
async def featured_videos(
    type: str = Query("new", pattern="^(new|trending|popular)$"),
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db)
):
    """
    Home page rails
    - new: videos flagged isNew, newest first
    - trending / popular: highest download counts
    """
    query = db.query(Video)
    if type == "new":
        query = query.filter(Video.is_new.is_(True)).order_by(desc(Video.created_at), desc(Video.id))
    else:
        query = query.order_by(desc(Video.download_count), desc(Video.id))

    return [video.to_dict(include_category=True) for video in query.limit(limit).all()]


@router.get("/{video_id}")
async def get_video(
    video_id: int,
    db: Session = Depends(get_db)
):
    """Video details with category and tags"""
    return get_video_or_404(db, video_id).to_dict(include_category=True)


@router.get("/{video_id}/related")
async def related_videos(
    video_id: int,
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db)
):
    """Other videos from the same category"""
    get_video_or_404(db, video_id)
    return [video.to_dict() for video in get_similar_videos(db, video_id, limit)]


@router.get("/{video_id}/preview")
async def video_preview(
    video_id: int,
    db: Session = Depends(get_db)
):
    """Redirect to the public preview clip"""
    video = get_video_or_404(db, video_id)
    if not video.preview_url:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Preview not available"
        )
    return RedirectResponse(video.preview_url)


@router.post("/{video_id}/download")
async def download_video(
    video_id: int,
    request: DownloadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Charge a download and return the tokenized file URL"""
    try:
        return process_download(db, current_user.id, video_id, request.formatId)
    except DownloadError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{video_id}/download/{format_id}")
async def download_file(
    video_id: int,
    format_id: str,
    token: str = Query(..., description="Resume token from the download response"),
    range: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """
    Stream the file for a recorded download
    The resume token makes retries and Range requests free of charge
    """
    try:
        verify_resume_token(token, video_id, format_id)
    except DownloadError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    video = get_video_or_404(db, video_id)
    fmt = find_format(video, format_id)
    if not fmt:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid format selected"
        )

    try:
        return video_file_response(video.video_key, range, download_file_name(video, fmt))
    except StorageError as e:
        logger.error(f"❌ Download file missing for video {video_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video file not found"
        )


@router.post("/{video_id}/secure-token", response_model=SecureTokenResponse)
async def create_secure_token(
    video_id: int,
    request: Optional[SecureTokenRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Issue a one-hour streaming token for the current user
    Premium videos require an active membership
    """
    video = get_video_or_404(db, video_id)

    if video.is_premium and not current_user.has_active_membership() and not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This video requires a premium membership"
        )

    request = request or SecureTokenRequest()
    watermark = request.watermark
    purpose = PURPOSE_DOWNLOAD if request.purpose == "download" else PURPOSE_STREAM
    token = generate_streaming_token(video.id, current_user.id, purpose=purpose, watermarked=watermark)
    path = "secure-download" if purpose == PURPOSE_DOWNLOAD else "secure-stream"

    return SecureTokenResponse(
        token=token,
        streamUrl=f"/api/{path}/{token}",
        expiresIn=settings.STREAM_TOKEN_TTL_SECONDS,
        watermarkText=watermark_text(current_user.username) if watermark else None,
    )
