"""
Download models - audit of quota consumption and bulk ZIP requests
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from .base import Base


class Download(Base):
    """
    One successful download of one video by one user
    """
    __tablename__ = "downloads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False, index=True)
    format_id = Column("formatId", String(32), nullable=True)
    downloaded_at = Column("downloadedAt", DateTime, default=func.now(), nullable=False, index=True)

    # Relationships
    video = relationship("Video")

    def __repr__(self):
        return f"<Download(id={self.id}, user_id={self.user_id}, video_id={self.video_id})>"

    def to_dict(self, include_video=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "videoId": self.video_id,
            "formatId": self.format_id,
            "downloadedAt": self.downloaded_at.isoformat() if self.downloaded_at else None,
        }
        if include_video:
            data["video"] = self.video.to_dict() if self.video else None
        return data


class BulkDownloadStatus(str, enum.Enum):
    """Bulk download lifecycle"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BulkDownload(Base):
    """
    A ZIP archive assembled for a single request
    """
    __tablename__ = "bulk_downloads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(SQLEnum(BulkDownloadStatus), default=BulkDownloadStatus.PENDING, nullable=False)
    total_videos = Column("totalVideos", Integer, default=0, nullable=False)
    success_count = Column("successCount", Integer, default=0, nullable=False)
    fail_count = Column("failCount", Integer, default=0, nullable=False)
    file_name = Column("fileName", String(255), nullable=True, index=True)
    requested_at = Column("requestedAt", DateTime, default=func.now(), nullable=False)
    completed_at = Column("completedAt", DateTime, nullable=True)

    items = relationship("BulkDownloadItem", back_populates="bulk_download", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<BulkDownload(id={self.id}, user_id={self.user_id}, status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "status": self.status.value,
            "totalVideos": self.total_videos,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "fileName": self.file_name,
            "requestedAt": self.requested_at.isoformat() if self.requested_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


class BulkDownloadItem(Base):
    """Per-video outcome inside a bulk download"""
    __tablename__ = "bulk_download_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bulk_download_id = Column("bulkDownloadId", Integer, ForeignKey("bulk_downloads.id", ondelete="CASCADE"), nullable=False)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # included / failed
    error_message = Column("errorMessage", Text, nullable=True)

    bulk_download = relationship("BulkDownload", back_populates="items")
