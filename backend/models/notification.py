"""
Notification models - in-app notifications, release calendar, category follows, devices
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base


class Notification(Base):
    """In-app notification delivered over REST and the WebSocket channel"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), default="info", nullable=False)
    data = Column(JSON, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    read_at = Column("readAt", DateTime, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, read={self.read})>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "data": self.data,
            "read": self.read,
            "readAt": self.read_at.isoformat() if self.read_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Release(Base):
    """Calendar entry for upcoming or past content drops"""
    __tablename__ = "releases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    release_date = Column("releaseDate", DateTime, nullable=False, index=True)
    type = Column(String(50), default="release", nullable=False)
    image_url = Column("imageUrl", Text, nullable=True)
    link = Column(Text, nullable=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=True)
    category_id = Column("categoryId", Integer, ForeignKey("categories.id"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "releaseDate": self.release_date.isoformat() if self.release_date else None,
            "type": self.type,
            "imageUrl": self.image_url,
            "link": self.link,
            "videoId": self.video_id,
            "categoryId": self.category_id,
        }


class CategorySubscription(Base):
    """User follows a category to hear about new videos"""
    __tablename__ = "category_subscriptions"
    __table_args__ = (UniqueConstraint("userId", "categoryId", name="uq_category_subscription"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column("categoryId", Integer, ForeignKey("categories.id"), nullable=False, index=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "categoryId": self.category_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Device(Base):
    """Push-capable client registered by a user"""
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    device_token = Column("deviceToken", String(512), unique=True, nullable=False)
    platform = Column(String(32), default="web", nullable=False)
    last_seen_at = Column("lastSeenAt", DateTime, default=func.now(), nullable=False)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "deviceToken": self.device_token,
            "platform": self.platform,
            "lastSeenAt": self.last_seen_at.isoformat() if self.last_seen_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
