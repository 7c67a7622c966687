"""
Notification Service
Stores in-app notifications, pushes them to open WebSocket connections and
manages category follows, devices and the release calendar
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from fastapi import WebSocket
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.notification import Notification, Release, CategorySubscription, Device
from models.video import Video, Category

logger = logging.getLogger(__name__)

LATEST_LIMIT = 50


class ConnectionManager:
    """Open WebSocket connections per user"""

    def __init__(self):
        self.active: Dict[int, Set[WebSocket]] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self.loop = asyncio.get_running_loop()
        self.active.setdefault(user_id, set()).add(websocket)
        logger.info(f"🔌 WebSocket connected: user={user_id} ({len(self.active[user_id])} open)")

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self.active.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.active[user_id]
        logger.info(f"🔌 WebSocket disconnected: user={user_id}")

    def is_connected(self, user_id: int) -> bool:
        return bool(self.active.get(user_id))

    async def send_to_user(self, user_id: int, message: Dict[str, Any]) -> None:
        for websocket in list(self.active.get(user_id, ())):
            try:
                await websocket.send_json(message)
            except RuntimeError as e:
                logger.warning(f"Dropping stale socket for user {user_id}: {e}")
                self.disconnect(user_id, websocket)

    def push(self, user_id: int, message: Dict[str, Any]) -> None:
        """Schedule a send from synchronous code; no-op when the user has no open socket"""
        if not self.is_connected(user_id) or self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.send_to_user(user_id, message), self.loop)


connection_manager = ConnectionManager()


# ============================================
# Notifications
# ============================================

def send_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    data: Optional[Dict[str, Any]] = None
) -> Notification:
    notification = Notification(user_id=user_id, title=title, message=message, type=type, data=data)
    db.add(notification)
    db.commit()
    db.refresh(notification)

    connection_manager.push(user_id, {"type": "notification", "notification": notification.to_dict()})
    return notification


def get_notifications(db: Session, user_id: int, limit: int = LATEST_LIMIT) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .limit(limit)
        .all()
    )


def get_unread(db: Session, user_id: int) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .all()
    )


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .count()
    )


def mark_as_read(db: Session, user_id: int, notification_ids: Optional[List[int]] = None) -> int:
    """Mark the given notifications (or all of them) read. Returns rows updated."""
    query = db.query(Notification).filter(Notification.user_id == user_id, Notification.read.is_(False))
    if notification_ids is not None:
        if not notification_ids:
            return 0
        query = query.filter(Notification.id.in_(notification_ids))

    updated = query.update({"read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    db.commit()
    return updated


def notify_new_video(db: Session, video: Video) -> int:
    """Tell every follower of the video's category about it. Returns notifications sent."""
    if video.category_id is None:
        return 0

    category = db.query(Category).filter(Category.id == video.category_id).first()
    followers = (
        db.query(CategorySubscription.user_id)
        .filter(CategorySubscription.category_id == video.category_id)
        .all()
    )

    for (user_id,) in followers:
        send_notification(
            db,
            user_id,
            title="New video available",
            message=f"{video.title} was just added to {category.name if category else 'the library'}",
            type="new-video",
            data={"videoId": video.id, "categoryId": video.category_id},
        )

    if followers:
        logger.info(f"🔔 Notified {len(followers)} followers about video {video.id}")
    return len(followers)


# ============================================
# Category follows
# ============================================

def subscribe_to_category(db: Session, user_id: int, category_id: int) -> CategorySubscription:
    existing = (
        db.query(CategorySubscription)
        .filter(CategorySubscription.user_id == user_id, CategorySubscription.category_id == category_id)
        .first()
    )
    if existing:
        return existing

    subscription = CategorySubscription(user_id=user_id, category_id=category_id)
    db.add(subscription)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return (
            db.query(CategorySubscription)
            .filter(CategorySubscription.user_id == user_id, CategorySubscription.category_id == category_id)
            .one()
        )
    db.refresh(subscription)
    return subscription


def unsubscribe_from_category(db: Session, user_id: int, category_id: int) -> bool:
    deleted = (
        db.query(CategorySubscription)
        .filter(CategorySubscription.user_id == user_id, CategorySubscription.category_id == category_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return bool(deleted)


def get_category_subscriptions(db: Session, user_id: int) -> List[CategorySubscription]:
    return db.query(CategorySubscription).filter(CategorySubscription.user_id == user_id).all()


# ============================================
# Devices
# ============================================

def register_device(db: Session, user_id: int, device_token: str, platform: str = "web") -> Device:
    """Upsert by token; a token moves to the user who registered it last"""
    device = db.query(Device).filter(Device.device_token == device_token).first()
    if device:
        device.user_id = user_id
        device.platform = platform
        device.last_seen_at = datetime.utcnow()
    else:
        device = Device(user_id=user_id, device_token=device_token, platform=platform)
        db.add(device)

    db.commit()
    db.refresh(device)
    return device


def get_devices(db: Session, user_id: int) -> List[Device]:
    return db.query(Device).filter(Device.user_id == user_id).order_by(Device.id).all()


def remove_device(db: Session, user_id: int, device_id: int) -> bool:
    deleted = (
        db.query(Device)
        .filter(Device.id == device_id, Device.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return bool(deleted)


# ============================================
# Release calendar
# ============================================

def get_calendar_events(
    db: Session,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> List[Release]:
    query = db.query(Release)
    if start_date:
        query = query.filter(Release.release_date >= start_date)
    if end_date:
        query = query.filter(Release.release_date <= end_date)
    return query.order_by(Release.release_date).all()
