"""
Bulk upload models - ingest sessions and their files
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, BigInteger, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from .base import Base


class UploadSessionStatus(str, enum.Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UploadFileStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    IMPORTED = "imported"


class BulkUploadSession(Base):
    """
    A batch of uploaded files processed together
    """
    __tablename__ = "bulk_upload_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    status = Column(SQLEnum(UploadSessionStatus), default=UploadSessionStatus.IN_PROGRESS, nullable=False)

    # Counters
    total_files = Column("totalFiles", Integer, default=0, nullable=False)
    processed_files = Column("processedFiles", Integer, default=0, nullable=False)
    successful_files = Column("successfulFiles", Integer, default=0, nullable=False)
    failed_files = Column("failedFiles", Integer, default=0, nullable=False)

    # Defaults applied to created videos
    default_category_id = Column("defaultCategoryId", Integer, ForeignKey("categories.id"), nullable=True)
    default_tags = Column("defaultTags", JSON, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
    updated_at = Column("updatedAt", DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    files = relationship("BulkUploadFile", back_populates="session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<BulkUploadSession(id={self.id}, status={self.status})>"

    def to_dict(self, include_files=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "status": self.status.value,
            "totalFiles": self.total_files,
            "processedFiles": self.processed_files,
            "successfulFiles": self.successful_files,
            "failedFiles": self.failed_files,
            "defaultCategoryId": self.default_category_id,
            "defaultTags": self.default_tags or [],
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_files:
            data["files"] = [f.to_dict() for f in self.files]
        return data


class BulkUploadFile(Base):
    """One uploaded file awaiting probing, tagging and import"""
    __tablename__ = "bulk_upload_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column("sessionId", Integer, ForeignKey("bulk_upload_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    original_filename = Column("originalFilename", String(500), nullable=False)
    stored_key = Column("storedKey", String(500), nullable=False)
    file_size = Column("fileSize", BigInteger, nullable=True)
    mime_type = Column("mimeType", String(100), nullable=True)
    status = Column(SQLEnum(UploadFileStatus), default=UploadFileStatus.PENDING, nullable=False)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=True)
    file_metadata = Column("metadata", JSON, nullable=True)
    suggested_tags = Column("suggestedTags", JSON, nullable=True)
    error_message = Column("errorMessage", Text, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    session = relationship("BulkUploadSession", back_populates="files")

    def to_dict(self):
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "originalFilename": self.original_filename,
            "storedKey": self.stored_key,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
            "status": self.status.value,
            "videoId": self.video_id,
            "metadata": self.file_metadata,
            "suggestedTags": self.suggested_tags or [],
            "errorMessage": self.error_message,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
