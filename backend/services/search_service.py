"""
Search Service
Filtered catalog search with relevance ranking, facets, autocomplete and
popular search terms
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import and_, case, desc, extract, func, or_, select
from sqlalchemy.orm import Session

from models.video import Video, Category, Tag, VideoTag
from models.search_log import SearchLog

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("relevance", "newest", "oldest", "popular", "title_asc", "title_desc")


def _conditions(
    query: Optional[str] = None,
    category_ids: Optional[List[int]] = None,
    resolutions: Optional[List[str]] = None,
    is_premium: Optional[bool] = None,
    is_loop: Optional[bool] = None,
    tags: Optional[List[str]] = None,
    year: Optional[int] = None,
) -> list:
    conditions = []

    if query:
        pattern = f"%{query}%"
        conditions.append(or_(Video.title.ilike(pattern), Video.description.ilike(pattern)))

    if category_ids:
        conditions.append(Video.category_id.in_(category_ids))

    if resolutions:
        conditions.append(Video.resolution.in_(resolutions))

    if is_premium is not None:
        conditions.append(Video.is_premium.is_(is_premium))

    if is_loop is not None:
        conditions.append(Video.is_loop.is_(is_loop))

    if tags:
        slugs = [tag.strip().lower() for tag in tags if tag.strip()]
        tagged = (
            select(VideoTag.video_id)
            .join(Tag, Tag.id == VideoTag.tag_id)
            .where(or_(Tag.slug.in_(slugs), func.lower(Tag.name).in_(slugs)))
        )
        conditions.append(Video.id.in_(tagged))

    if year:
        conditions.append(extract("year", Video.created_at) == year)

    return conditions


def _order_by(sort_by: str, query: Optional[str]) -> list:
    if sort_by == "newest":
        return [desc(Video.created_at)]
    if sort_by == "oldest":
        return [Video.created_at]
    if sort_by == "popular":
        return [desc(Video.download_count)]
    if sort_by == "title_asc":
        return [Video.title]
    if sort_by == "title_desc":
        return [desc(Video.title)]

    # relevance: title matches first, then description matches, then popularity
    if query:
        pattern = f"%{query}%"
        rank = case(
            (Video.title.ilike(pattern), 1),
            (Video.description.ilike(pattern), 2),
            else_=3,
        )
        return [rank, desc(Video.download_count)]
    return [desc(Video.created_at)]


def get_facets(db: Session, conditions: list) -> Dict[str, List[Dict[str, Any]]]:
    """Category, resolution and year counts over the filtered result set"""
    where = and_(*conditions) if conditions else None

    category_query = (
        db.query(Category.id, Category.name, func.count(Video.id))
        .select_from(Video)
        .outerjoin(Category, Video.category_id == Category.id)
    )
    resolution_query = db.query(Video.resolution, func.count(Video.id))
    year_col = extract("year", Video.created_at)
    year_query = db.query(year_col, func.count(Video.id))

    if where is not None:
        category_query = category_query.filter(where)
        resolution_query = resolution_query.filter(where)
        year_query = year_query.filter(where)

    categories = category_query.group_by(Category.id, Category.name).order_by(desc(func.count(Video.id))).all()
    resolutions = resolution_query.group_by(Video.resolution).order_by(desc(func.count(Video.id))).all()
    years = year_query.group_by(year_col).order_by(desc(year_col)).all()

    return {
        "categories": [
            {"id": cat_id, "name": name or "Uncategorized", "count": count}
            for cat_id, name, count in categories
        ],
        "resolutions": [
            {"resolution": resolution or "Unknown", "count": count}
            for resolution, count in resolutions
        ],
        "years": [
            {"year": int(year), "count": count}
            for year, count in years if year is not None
        ],
    }


def search_videos(
    db: Session,
    query: Optional[str] = None,
    category_ids: Optional[List[int]] = None,
    resolutions: Optional[List[str]] = None,
    is_premium: Optional[bool] = None,
    is_loop: Optional[bool] = None,
    tags: Optional[List[str]] = None,
    year: Optional[int] = None,
    sort_by: str = "relevance",
    page: int = 1,
    limit: int = 20,
    user_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Search the catalog

    Returns:
        {videos, total, page, limit, totalPages, facets}
    """
    query = (query or "").strip() or None
    conditions = _conditions(query, category_ids, resolutions, is_premium, is_loop, tags, year)

    base = db.query(Video)
    if conditions:
        base = base.filter(and_(*conditions))

    total = base.count()
    videos = (
        base.order_by(*_order_by(sort_by, query))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    if query:
        log_search(db, query, total, user_id)

    return {
        "videos": [video.to_dict() for video in videos],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
        "facets": get_facets(db, conditions),
    }


def log_search(db: Session, query: str, result_count: int, user_id: Optional[int] = None) -> None:
    db.add(SearchLog(query=query.lower()[:255], user_id=user_id, result_count=result_count))
    db.commit()


def get_autocomplete_suggestions(db: Session, prefix: str, limit: int = 10) -> List[str]:
    """Titles, category names and tag names starting with prefix, de-duplicated"""
    prefix = (prefix or "").strip()
    if len(prefix) < 2:
        return []

    pattern = f"{prefix}%"
    titles = [row[0] for row in db.query(Video.title).filter(Video.title.ilike(pattern)).limit(limit)]
    categories = [row[0] for row in db.query(Category.name).filter(Category.name.ilike(pattern)).limit(limit)]
    tags = [row[0] for row in db.query(Tag.name).filter(Tag.name.ilike(pattern)).limit(limit)]

    suggestions = []
    seen = set()
    for value in titles + categories + tags:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            suggestions.append(value)

    return suggestions[:limit]


def get_popular_search_terms(db: Session, limit: int = 10) -> List[str]:
    """Most frequent logged queries; most downloaded titles when nothing is logged yet"""
    terms = (
        db.query(SearchLog.query, func.count(SearchLog.id).label("hits"))
        .group_by(SearchLog.query)
        .order_by(desc("hits"))
        .limit(limit)
        .all()
    )
    if terms:
        return [term for term, _ in terms]

    return [row[0] for row in db.query(Video.title).order_by(desc(Video.download_count)).limit(limit)]
