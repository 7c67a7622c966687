"""
Catalog models - Videos, Categories, Tags
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, BigInteger, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base


class Category(Base):
    """
    Video categories (Hip Hop, EDM, Wedding, etc.)
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    icon_name = Column("iconName", String(64), nullable=True)
    item_count = Column("itemCount", Integer, default=0, nullable=False)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    # Relationships
    videos = relationship("Video", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "iconName": self.icon_name,
            "itemCount": self.item_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Video(Base):
    """
    Downloadable video and its storage location
    """
    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Basic information
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Media on storage
    video_url = Column("videoUrl", Text, nullable=True)
    video_key = Column("videoKey", String(500), nullable=True)
    thumbnail_url = Column("thumbnailUrl", Text, nullable=True)
    preview_url = Column("previewUrl", Text, nullable=True)

    # Metadata
    duration = Column(Integer, nullable=True)  # Duration in seconds
    resolution = Column(String(20), nullable=True)  # e.g., "1080p"
    file_size = Column("fileSize", BigInteger, nullable=True)

    category_id = Column("categoryId", Integer, ForeignKey("categories.id"), nullable=True, index=True)

    # Flags
    is_loop = Column("isLoop", Boolean, default=False, nullable=False)
    is_premium = Column("isPremium", Boolean, default=True, nullable=False)
    is_new = Column("isNew", Boolean, default=False, nullable=False)
    is_featured = Column("isFeatured", Boolean, default=False, nullable=False)

    download_count = Column("downloadCount", Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
    updated_at = Column("updatedAt", DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    category = relationship("Category", back_populates="videos")
    tags = relationship("Tag", secondary="video_tags", viewonly=True)

    def __repr__(self):
        return f"<Video(id={self.id}, title={self.title})>"

    def to_dict(self, include_category=False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "videoUrl": self.video_url,
            "thumbnailUrl": self.thumbnail_url,
            "previewUrl": self.preview_url,
            "duration": self.duration,
            "resolution": self.resolution,
            "fileSize": self.file_size,
            "categoryId": self.category_id,
            "isLoop": self.is_loop,
            "isPremium": self.is_premium,
            "isNew": self.is_new,
            "isFeatured": self.is_featured,
            "downloadCount": self.download_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_category:
            data["category"] = self.category.to_dict() if self.category else None
            data["tags"] = [tag.name for tag in self.tags]

        return data


class Tag(Base):
    """Free-form tag, optionally scoped to a category"""
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    category_id = Column("categoryId", Integer, ForeignKey("categories.id"), nullable=True)
    usage_count = Column("usageCount", Integer, default=0, nullable=False)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Tag(id={self.id}, slug={self.slug})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "categoryId": self.category_id,
            "usageCount": self.usage_count,
        }


class VideoTag(Base):
    """Association between videos and tags"""
    __tablename__ = "video_tags"
    __table_args__ = (UniqueConstraint("videoId", "tagId", name="uq_video_tag"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    tag_id = Column("tagId", Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True)
    added_by_id = Column("addedById", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
