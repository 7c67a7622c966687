"""
API key management and usage accounting for third-party integrations
"""
import secrets
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy import case, desc, func
from sqlalchemy.orm import Session

from models.api_key import ApiKey, ApiUsage

logger = logging.getLogger(__name__)

KEY_PREFIX = "tvp_"

USAGE_PERIODS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": relativedelta(months=1),
}


def generate_key_value() -> str:
    """tvp_ followed by 32 hex characters"""
    return KEY_PREFIX + secrets.token_hex(16)


def create_api_key(
    db: Session,
    user_id: int,
    name: str,
    scopes: Optional[List[str]] = None,
    expires_at: Optional[datetime] = None
) -> ApiKey:
    api_key = ApiKey(
        user_id=user_id,
        name=name,
        key=generate_key_value(),
        scopes=scopes or ["read"],
        expires_at=expires_at,
        is_active=True,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)

    logger.info(f"🔑 API key {api_key.id} created for user {user_id}")
    return api_key


def list_api_keys(db: Session, user_id: int) -> List[ApiKey]:
    return (
        db.query(ApiKey)
        .filter(ApiKey.user_id == user_id, ApiKey.is_active.is_(True))
        .order_by(desc(ApiKey.created_at), desc(ApiKey.id))
        .all()
    )


def revoke_api_key(db: Session, user_id: int, key_id: int) -> bool:
    api_key = db.query(ApiKey).filter(ApiKey.id == key_id, ApiKey.user_id == user_id).first()
    if not api_key:
        return False

    api_key.is_active = False
    db.commit()
    logger.info(f"🔒 API key {key_id} revoked")
    return True


def resolve_api_key(db: Session, key: str) -> Optional[ApiKey]:
    """Active, unexpired key with an active owner, or None"""
    api_key = db.query(ApiKey).filter(ApiKey.key == key).first()
    if not api_key or not api_key.is_usable():
        return None
    if not api_key.user or not api_key.user.is_active:
        return None
    return api_key


def log_usage(
    db: Session,
    api_key: ApiKey,
    endpoint: str,
    method: str,
    status_code: int,
    response_time_ms: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> None:
    db.add(ApiUsage(
        api_key_id=api_key.id,
        endpoint=endpoint,
        method=method,
        status_code=status_code,
        response_time=response_time_ms,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    ))
    api_key.last_used = datetime.utcnow()
    db.commit()


def get_usage_stats(db: Session, user_id: int, period: str = "month", now: Optional[datetime] = None) -> Dict[str, Any]:
    """Request totals, success rate, latency and breakdowns for the user's keys"""
    now = now or datetime.utcnow()
    since = now - USAGE_PERIODS.get(period, USAGE_PERIODS["month"])

    key_ids = [row[0] for row in db.query(ApiKey.id).filter(ApiKey.user_id == user_id)]
    empty = {
        "period": period,
        "totalRequests": 0,
        "successRate": 0,
        "averageResponseTime": 0,
        "requestsByEndpoint": [],
        "requestsByDay": [],
    }
    if not key_ids:
        return empty

    scope = (ApiUsage.api_key_id.in_(key_ids), ApiUsage.timestamp >= since)

    total, successes, avg_time = (
        db.query(
            func.count(ApiUsage.id),
            func.sum(case(((ApiUsage.status_code >= 200) & (ApiUsage.status_code < 300), 1), else_=0)),
            func.avg(ApiUsage.response_time),
        )
        .filter(*scope)
        .one()
    )
    if not total:
        return empty

    requests = func.count(ApiUsage.id).label("requests")
    by_endpoint = (
        db.query(ApiUsage.endpoint, requests, func.avg(ApiUsage.response_time))
        .filter(*scope)
        .group_by(ApiUsage.endpoint)
        .order_by(desc(requests))
        .limit(10)
        .all()
    )
    day = func.date(ApiUsage.timestamp)
    by_day = db.query(day, func.count(ApiUsage.id)).filter(*scope).group_by(day).order_by(day).all()

    return {
        "period": period,
        "totalRequests": total,
        "successRate": round((successes or 0) / total * 100, 2),
        "averageResponseTime": round(float(avg_time or 0), 2),
        "requestsByEndpoint": [
            {"endpoint": endpoint, "requests": count, "averageResponseTime": round(float(avg or 0), 2)}
            for endpoint, count, avg in by_endpoint
        ],
        "requestsByDay": [{"day": str(d), "requests": count} for d, count in by_day],
    }
