"""
Recommendation Service
Category affinity, collaborative filtering and trending signals built from the
download history
"""
import math
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from models.video import Video, Category
from models.download import Download
from models.library import Favorite

logger = logging.getLogger(__name__)

TRENDING_WINDOW_DAYS = 30
MIN_SHARED_DOWNLOADS = 2

# Curated themes match categories whose name contains one of the keywords
CURATED_THEMES: Dict[str, List[str]] = {
    "party": ["party", "hip hop", "edm", "dance", "pop"],
    "wedding": ["wedding", "love", "romantic", "pop", "classic"],
    "club": ["club", "edm", "house", "techno", "vj loop"],
}


def _exclude(query, exclude_ids: Iterable[int]):
    exclude_ids = list(exclude_ids)
    if exclude_ids:
        query = query.filter(Video.id.notin_(exclude_ids))
    return query


def get_popular_videos(db: Session, limit: int = 10, exclude_ids: Iterable[int] = ()) -> List[Video]:
    query = _exclude(db.query(Video), exclude_ids)
    return query.order_by(desc(Video.download_count), desc(Video.id)).limit(limit).all()


def get_new_releases(db: Session, limit: int = 10) -> List[Video]:
    return db.query(Video).order_by(desc(Video.created_at), desc(Video.id)).limit(limit).all()


def get_trending_videos(
    db: Session,
    limit: int = 10,
    exclude_ids: Iterable[int] = (),
    now: Optional[datetime] = None
) -> List[Video]:
    """Videos with the most downloads in the last 30 days"""
    since = (now or datetime.utcnow()) - timedelta(days=TRENDING_WINDOW_DAYS)
    recent = func.count(Download.id).label("recent_downloads")

    query = (
        db.query(Video, recent)
        .join(Download, Download.video_id == Video.id)
        .filter(Download.downloaded_at >= since)
    )
    query = _exclude(query, exclude_ids)

    rows = query.group_by(Video.id).order_by(desc(recent), desc(Video.download_count)).limit(limit).all()
    return [video for video, _ in rows]


def get_similar_videos(db: Session, video_id: int, limit: int = 5) -> List[Video]:
    """Most downloaded videos from the same category"""
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video or video.category_id is None:
        return []

    return (
        db.query(Video)
        .filter(Video.category_id == video.category_id, Video.id != video_id)
        .order_by(desc(Video.download_count))
        .limit(limit)
        .all()
    )


def get_related_videos(db: Session, video_id: int, limit: int = 6) -> List[Video]:
    """Same-category videos first, topped up with popular videos from elsewhere"""
    related = get_similar_videos(db, video_id, limit)
    if len(related) < limit:
        exclude = [video_id] + [video.id for video in related]
        related += get_popular_videos(db, limit - len(related), exclude_ids=exclude)
    return related


def favorite_category_ids(db: Session, user_id: int, top: int = 3) -> List[int]:
    """Categories the user downloads or favorites most"""
    scores: Dict[int, int] = {}

    downloaded = (
        db.query(Video.category_id, func.count(Download.id))
        .join(Download, Download.video_id == Video.id)
        .filter(Download.user_id == user_id, Video.category_id.isnot(None))
        .group_by(Video.category_id)
        .all()
    )
    favorited = (
        db.query(Video.category_id, func.count(Favorite.id))
        .join(Favorite, Favorite.video_id == Video.id)
        .filter(Favorite.user_id == user_id, Video.category_id.isnot(None))
        .group_by(Video.category_id)
        .all()
    )

    for category_id, count in list(downloaded) + list(favorited):
        scores[category_id] = scores.get(category_id, 0) + count

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [category_id for category_id, _ in ranked[:top]]


def _downloaded_ids(db: Session, user_id: int) -> List[int]:
    return [row[0] for row in db.query(Download.video_id).filter(Download.user_id == user_id).distinct()]


def get_category_recommendations(db: Session, user_id: int, limit: int) -> List[Video]:
    """Unseen videos from the user's favorite categories, then discovery from other categories"""
    category_ids = favorite_category_ids(db, user_id)
    if not category_ids:
        return get_popular_videos(db, limit)

    seen = _downloaded_ids(db, user_id)

    main = _exclude(db.query(Video).filter(Video.category_id.in_(category_ids)), seen)
    picks = main.order_by(desc(Video.download_count)).limit(math.ceil(limit * 0.7)).all()

    remaining = limit - len(picks)
    if remaining > 0:
        discovery = _exclude(
            db.query(Video).filter(
                (Video.category_id.notin_(category_ids)) | (Video.category_id.is_(None))
            ),
            seen,
        )
        picks += discovery.order_by(desc(Video.download_count)).limit(remaining).all()

    return picks


def get_collaborative_recommendations(db: Session, user_id: int, limit: int) -> List[Video]:
    """Videos downloaded by users who share at least two downloads with this user"""
    seen = _downloaded_ids(db, user_id)
    if not seen:
        return []

    shared = func.count(func.distinct(Download.video_id))
    neighbours = [
        row[0]
        for row in (
            db.query(Download.user_id)
            .filter(Download.user_id != user_id, Download.video_id.in_(seen))
            .group_by(Download.user_id)
            .having(shared >= MIN_SHARED_DOWNLOADS)
            .order_by(desc(shared))
            .limit(10)
        )
    ]
    if not neighbours:
        return []

    audience = func.count(func.distinct(Download.user_id)).label("audience")
    rows = (
        db.query(Video, audience)
        .join(Download, Download.video_id == Video.id)
        .filter(Download.user_id.in_(neighbours), Video.id.notin_(seen))
        .group_by(Video.id)
        .order_by(desc(audience), desc(Video.download_count))
        .limit(limit)
        .all()
    )
    return [video for video, _ in rows]


def get_personalized_recommendations(db: Session, user_id: int, limit: int = 12) -> List[Video]:
    """
    Blend of category affinity (50%), collaborative filtering (30%) and
    trending (20%), de-duplicated in that order. Users without history get
    the most popular videos.
    """
    if not _downloaded_ids(db, user_id) and not favorite_category_ids(db, user_id):
        return get_popular_videos(db, limit)

    by_category = get_category_recommendations(db, user_id, math.ceil(limit * 0.5))
    collaborative = get_collaborative_recommendations(db, user_id, math.ceil(limit * 0.3))

    combined: List[Video] = []
    seen_ids = set()
    for video in by_category + collaborative:
        if video.id not in seen_ids:
            seen_ids.add(video.id)
            combined.append(video)

    trending = get_trending_videos(db, math.ceil(limit * 0.2), exclude_ids=seen_ids)
    for video in trending:
        if video.id not in seen_ids:
            seen_ids.add(video.id)
            combined.append(video)

    if len(combined) < limit:
        combined += get_popular_videos(db, limit - len(combined), exclude_ids=seen_ids)

    return combined[:limit]


def get_you_might_like(
    db: Session,
    video_id: Optional[int] = None,
    category_id: Optional[int] = None,
    include_premium: bool = True,
    limit: int = 10
) -> List[Video]:
    query = db.query(Video)
    if video_id:
        query = query.filter(Video.id != video_id)
        if category_id is None:
            source = db.query(Video).filter(Video.id == video_id).first()
            category_id = source.category_id if source else None
    if category_id:
        query = query.filter(Video.category_id == category_id)
    if not include_premium:
        query = query.filter(Video.is_premium.is_(False))

    return query.order_by(desc(Video.download_count)).limit(limit).all()


def get_curated_sets(db: Session, theme: str, limit: int = 6) -> Dict[str, Any]:
    """Top videos per category for a party, wedding or club theme"""
    keywords = CURATED_THEMES.get(theme.lower())

    categories = db.query(Category).order_by(Category.name).all()
    if keywords:
        categories = [c for c in categories if any(k in c.name.lower() for k in keywords)]
    else:
        categories = categories[:4]

    sets = []
    for category in categories:
        videos = (
            db.query(Video)
            .filter(Video.category_id == category.id)
            .order_by(desc(Video.download_count))
            .limit(limit)
            .all()
        )
        sets.append({
            "category": {"id": category.id, "name": category.name},
            "videos": [video.to_dict() for video in videos],
        })

    return {"theme": theme, "sets": sets}
