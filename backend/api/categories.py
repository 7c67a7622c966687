"""
Category API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc

from core.database import get_db
from models.video import Video, Category

router = APIRouter()


@router.get("")
async def list_categories(db: Session = Depends(get_db)):
    """All categories ordered by name"""
    categories = db.query(Category).order_by(Category.name).all()
    return [category.to_dict() for category in categories]


@router.get("/{slug}/videos")
async def category_videos(
    slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Videos of one category, newest first"""
    category = db.query(Category).filter(Category.slug == slug).first()
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Category '{slug}' not found"
        )

    query = db.query(Video).filter(Video.category_id == category.id)
    total = query.count()
    videos = (
        query.order_by(desc(Video.created_at), desc(Video.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "category": category.to_dict(),
        "videos": [video.to_dict() for video in videos],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }
