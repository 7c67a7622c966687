"""
User collections - Favorites and Playlists
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base


class Favorite(Base):
    """A video bookmarked by a user (unique per user/video)"""
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("userId", "videoId", name="uq_favorite_user_video"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False, index=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    video = relationship("Video")

    def __repr__(self):
        return f"<Favorite(user_id={self.user_id}, video_id={self.video_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "videoId": self.video_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "video": self.video.to_dict() if self.video else None,
        }


class Playlist(Base):
    """
    Ordered user collection, optionally shared through a token
    """
    __tablename__ = "playlists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column("isPublic", Boolean, default=False, nullable=False)
    share_token = Column("shareToken", String(64), unique=True, nullable=True, index=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
    updated_at = Column("updatedAt", DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "PlaylistItem",
        back_populates="playlist",
        cascade="all, delete-orphan",
        order_by="PlaylistItem.position",
    )

    def __repr__(self):
        return f"<Playlist(id={self.id}, name={self.name}, user_id={self.user_id})>"

    def to_dict(self, include_items=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "isPublic": self.is_public,
            "shareToken": self.share_token,
            "itemCount": len(self.items),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PlaylistItem(Base):
    """Video at a 1-based position within a playlist"""
    __tablename__ = "playlist_items"
    __table_args__ = (UniqueConstraint("playlistId", "videoId", name="uq_playlist_video"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    playlist_id = Column("playlistId", Integer, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False)
    position = Column(Integer, nullable=False)
    added_at = Column("addedAt", DateTime, default=func.now(), nullable=False)

    playlist = relationship("Playlist", back_populates="items")
    video = relationship("Video")

    def to_dict(self):
        return {
            "id": self.id,
            "playlistId": self.playlist_id,
            "videoId": self.video_id,
            "position": self.position,
            "addedAt": self.added_at.isoformat() if self.added_at else None,
            "video": self.video.to_dict() if self.video else None,
        }
