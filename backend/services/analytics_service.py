"""
Analytics Service
Admin dashboard metrics computed from users, downloads, memberships and the search log
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import and_, case, desc, func
from sqlalchemy.orm import Session

from models.user import User
from models.membership import Membership
from models.video import Video, Category
from models.download import Download
from models.search_log import SearchLog

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30


def resolve_window(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Default window is the last 30 days"""
    end = end_date or now or datetime.utcnow()
    start = start_date or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    return start, end


def _in_window(column, start: datetime, end: datetime):
    return and_(column >= start, column <= end)


def get_statistics(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.utcnow()
    return {
        "totalUsers": db.query(func.count(User.id)).scalar(),
        "totalVideos": db.query(func.count(Video.id)).scalar(),
        "totalDownloads": db.query(func.count(Download.id)).scalar(),
        "activeMemberships": (
            db.query(func.count(User.id))
            .filter(User.membership_id.isnot(None), User.membership_end_date > now)
            .scalar()
        ),
        "totalCategories": db.query(func.count(Category.id)).scalar(),
    }


def revenue_by_tier(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Current recurring revenue per tier from active members (price is in cents)"""
    now = now or datetime.utcnow()
    rows = (
        db.query(Membership.name, Membership.price, func.count(User.id))
        .join(User, User.membership_id == Membership.id)
        .filter(User.membership_end_date > now)
        .group_by(Membership.id, Membership.name, Membership.price)
        .all()
    )

    by_tier = {name: round(count * price / 100, 2) for name, price, count in rows}
    return {"total": round(sum(by_tier.values()), 2), "byMembershipTier": by_tier}


def get_dashboard_metrics(
    db: Session,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    start, end = resolve_window(start_date, end_date, now)

    new_users = db.query(func.count(User.id)).filter(_in_window(User.created_at, start, end)).scalar()
    total_downloads = (
        db.query(func.count(Download.id)).filter(_in_window(Download.downloaded_at, start, end)).scalar()
    )
    active_subscriptions = (
        db.query(func.count(User.id))
        .filter(User.membership_id.isnot(None), User.membership_end_date > now)
        .scalar()
    )

    premium, standard = (
        db.query(
            func.sum(case((Video.is_premium.is_(True), 1), else_=0)),
            func.sum(case((Video.is_premium.is_(False), 1), else_=0)),
        )
        .select_from(Download)
        .join(Video, Download.video_id == Video.id)
        .filter(_in_window(Download.downloaded_at, start, end))
        .one()
    )

    popular_videos = (
        db.query(Download.video_id)
        .filter(_in_window(Download.downloaded_at, start, end))
        .group_by(Download.video_id)
        .order_by(desc(func.count(Download.id)))
        .limit(10)
        .all()
    )
    popular_categories = (
        db.query(Video.category_id)
        .join(Download, Download.video_id == Video.id)
        .filter(_in_window(Download.downloaded_at, start, end), Video.category_id.isnot(None))
        .group_by(Video.category_id)
        .order_by(desc(func.count(Download.id)))
        .limit(5)
        .all()
    )

    return {
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "newUsers": new_users,
        "totalDownloads": total_downloads,
        "activeSubscriptions": active_subscriptions,
        "premiumDownloads": premium or 0,
        "standardDownloads": standard or 0,
        "revenues": revenue_by_tier(db, now),
        "popularVideoIds": [row[0] for row in popular_videos],
        "popularCategoryIds": [row[0] for row in popular_categories],
        "searchTrends": [entry["term"] for entry in get_search_analytics(db, start, end, limit=5)],
    }


def get_top_content(db: Session, start_date=None, end_date=None, limit: int = 10) -> List[Dict[str, Any]]:
    start, end = resolve_window(start_date, end_date)
    downloads = func.count(Download.id).label("downloads")
    rows = (
        db.query(Video, downloads)
        .join(Download, Download.video_id == Video.id)
        .filter(_in_window(Download.downloaded_at, start, end))
        .group_by(Video.id)
        .order_by(desc(downloads))
        .limit(limit)
        .all()
    )
    return [
        {"id": video.id, "title": video.title, "categoryId": video.category_id, "downloads": count}
        for video, count in rows
    ]


def get_category_analytics(db: Session, start_date=None, end_date=None) -> List[Dict[str, Any]]:
    """
    Downloads per category in the window with growth against the previous
    window of equal length and popularity as a 0-100 share of all downloads
    """
    start, end = resolve_window(start_date, end_date)
    previous_end = start
    previous_start = start - (end - start)

    def downloads_by_category(window_start, window_end) -> Dict[int, int]:
        rows = (
            db.query(Video.category_id, func.count(Download.id))
            .join(Download, Download.video_id == Video.id)
            .filter(Download.downloaded_at >= window_start, Download.downloaded_at < window_end)
            .group_by(Video.category_id)
            .all()
        )
        return {category_id: count for category_id, count in rows}

    current = downloads_by_category(start, end)
    previous = downloads_by_category(previous_start, previous_end)
    total = sum(current.values())

    results = []
    for category in db.query(Category).all():
        downloads = current.get(category.id, 0)
        before = previous.get(category.id, 0)
        if before:
            growth = round((downloads - before) / before * 100, 2)
        else:
            growth = 100 if downloads else 0

        top = (
            db.query(Video.id, Video.title)
            .filter(Video.category_id == category.id)
            .order_by(desc(Video.download_count))
            .first()
        )
        results.append({
            "id": category.id,
            "name": category.name,
            "downloads": downloads,
            "growthRate": growth,
            "popularity": round(downloads / total * 100) if total else 0,
            "mostDownloaded": {"id": top[0], "title": top[1]} if top else None,
        })

    results.sort(key=lambda entry: entry["downloads"], reverse=True)
    return results


def get_engagement_metrics(db: Session, start_date=None, end_date=None) -> Dict[str, Any]:
    start, end = resolve_window(start_date, end_date)

    per_user = (
        db.query(Download.user_id, func.count(Download.id).label("downloads"))
        .filter(_in_window(Download.downloaded_at, start, end))
        .group_by(Download.user_id)
        .all()
    )
    active_users = len(per_user)
    avg_downloads = round(sum(count for _, count in per_user) / active_users, 2) if active_users else 0

    earlier_users = db.query(Download.user_id).filter(Download.downloaded_at < start).distinct()
    returning_users = (
        db.query(func.count(func.distinct(Download.user_id)))
        .filter(_in_window(Download.downloaded_at, start, end), Download.user_id.in_(earlier_users))
        .scalar()
    )
    total_subscribers = db.query(func.count(User.id)).filter(User.membership_id.isnot(None)).scalar()

    return {
        "activeUsers": active_users,
        "avgDownloadsPerUser": avg_downloads,
        "retentionRate": round(returning_users / total_subscribers * 100, 2) if total_subscribers else 0,
        "totalSubscribers": total_subscribers,
    }


def get_search_analytics(db: Session, start_date=None, end_date=None, limit: int = 10) -> List[Dict[str, Any]]:
    """Most searched terms with their share of all searches in the window"""
    start, end = resolve_window(start_date, end_date)
    hits = func.count(SearchLog.id).label("hits")

    rows = (
        db.query(SearchLog.query, hits)
        .filter(_in_window(SearchLog.created_at, start, end))
        .group_by(SearchLog.query)
        .order_by(desc(hits))
        .limit(limit)
        .all()
    )
    total = (
        db.query(func.count(SearchLog.id)).filter(_in_window(SearchLog.created_at, start, end)).scalar()
    )

    return [
        {"term": term, "count": count, "percentage": round(count / total * 100) if total else 0}
        for term, count in rows
    ]
