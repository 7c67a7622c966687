"""
Recommendation endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.security import get_current_user
from models.user import User
from models.video import Video
from services import recommendation_service as recs

router = APIRouter()


def _videos(videos):
    return [video.to_dict() for video in videos]


def _require_video(db: Session, video_id: int) -> None:
    if not db.query(Video.id).filter(Video.id == video_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )


@router.get("/related/{video_id}")
async def related(video_id: int, limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    """Same category first, topped up with popular videos"""
    _require_video(db, video_id)
    return _videos(recs.get_related_videos(db, video_id, limit))


@router.get("/similar/{video_id}")
async def similar(video_id: int, limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    _require_video(db, video_id)
    return _videos(recs.get_similar_videos(db, video_id, limit))


@router.get("/personalized")
async def personalized(
    limit: int = Query(12, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Mix of favorite categories, collaborative picks and trending videos
    """
    return _videos(recs.get_personalized_recommendations(db, current_user.id, limit))


@router.get("/trending")
async def trending(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return _videos(recs.get_trending_videos(db, limit))


@router.get("/popular")
async def popular(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return _videos(recs.get_popular_videos(db, limit))


@router.get("/new-releases")
async def new_releases(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return _videos(recs.get_new_releases(db, limit))


@router.get("/curated/{theme}")
async def curated(theme: str, limit: int = Query(6, ge=1, le=20), db: Session = Depends(get_db)):
    """Sets for party, wedding or club; other themes get the first categories"""
    return recs.get_curated_sets(db, theme, limit)


@router.get("/you-might-like")
async def you_might_like(
    videoId: Optional[int] = Query(None),
    categoryId: Optional[int] = Query(None),
    includePremium: bool = Query(True),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    return _videos(recs.get_you_might_like(db, videoId, categoryId, includePremium, limit))
