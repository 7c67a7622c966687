"""
Search API endpoints
Catalog search with facets, autocomplete and popular terms
"""
import time
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List

from core.database import get_db
from core.security import get_optional_user
from models.user import User
from services.search_service import (
    SORT_OPTIONS,
    search_videos,
    get_autocomplete_suggestions,
    get_popular_search_terms,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class SearchResponse(BaseModel):
    """Search results with pagination and facets"""
    videos: List[dict]
    total: int
    page: int
    limit: int
    totalPages: int
    facets: dict
    query: Optional[str] = None
    executionTimeMs: Optional[float] = None


# ============================================
# Search Endpoints
# ============================================

@router.get("", response_model=SearchResponse)
async def search(
    q: Optional[str] = Query(None, max_length=500, description="Search query"),
    categories: Optional[List[int]] = Query(None, description="Category IDs"),
    resolution: Optional[List[str]] = Query(None, description="Resolutions, e.g. 1080p"),
    premium: Optional[bool] = Query(None),
    loop: Optional[bool] = Query(None),
    tags: Optional[List[str]] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=3000),
    sort: str = Query("relevance", pattern="^(" + "|".join(SORT_OPTIONS) + ")$"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Results per page"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Search videos by title and description

    Features:
    - Filters by category, resolution, premium, loop, tags and year
    - Relevance ranks title matches ahead of description matches
    - Facet counts for the current filters
    """
    start_time = time.time()

    result = search_videos(
        db,
        query=q,
        category_ids=categories,
        resolutions=resolution,
        is_premium=premium,
        is_loop=loop,
        tags=tags,
        year=year,
        sort_by=sort,
        page=page,
        limit=limit,
        user_id=current_user.id if current_user else None,
    )

    return SearchResponse(
        **result,
        query=q,
        executionTimeMs=round((time.time() - start_time) * 1000, 2),
    )


@router.get("/autocomplete")
async def autocomplete(
    q: str = Query("", max_length=100),
    limit: int = Query(10, ge=1, le=25),
    db: Session = Depends(get_db)
):
    """Suggestions once at least two characters are typed"""
    return {"suggestions": get_autocomplete_suggestions(db, q, limit)}


@router.get("/popular")
async def popular_terms(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    return {"terms": get_popular_search_terms(db, limit)}
