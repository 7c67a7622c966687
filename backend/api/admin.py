"""
Admin API endpoints
Handles administrative operations for users, videos and categories
All endpoints require admin authentication
"""
import re
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc, or_
from sqlalchemy.exc import IntegrityError
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from core.database import get_db
from core.security import get_current_admin, hash_password
from models.user import User, UserRole
from models.membership import Membership
from models.video import Video, Category, VideoTag
from models.download import Download, BulkDownloadItem
from models.library import Favorite, PlaylistItem
from models.moderation import ContentRights, CopyrightClaim, ContentAnalysisResult
from models.notification import Release
from models.bulk_upload import BulkUploadFile
from services.notification_service import notify_new_video

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Utility Functions
# ============================================

def generate_slug(name: str) -> str:
    """
    URL-friendly slug

    Example: "Hip Hop / R&B" -> "hip-hop-rb"
    """
    slug = name.lower()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'[-\s_]+', '-', slug)
    return slug.strip('-')


def _get_or_404(db: Session, model, object_id: int, label: str):
    obj = db.query(model).filter(model.id == object_id).first()
    if not obj:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} with id {object_id} not found"
        )
    return obj


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None:
        _get_or_404(db, Category, category_id, "Category")


def _adjust_item_count(db: Session, category_id: Optional[int], delta: int) -> None:
    if category_id is None:
        return
    category = db.query(Category).filter(Category.id == category_id).first()
    if category:
        category.item_count = max(0, (category.item_count or 0) + delta)


def _delete_videos(db: Session, videos: List[Video]) -> None:
    """Remove videos with their library, tag and moderation rows. Caller commits."""
    ids = [video.id for video in videos]
    for model in (VideoTag, Favorite, PlaylistItem, BulkDownloadItem, Download,
                  ContentRights, CopyrightClaim, ContentAnalysisResult):
        db.query(model).filter(model.video_id.in_(ids)).delete(synchronize_session=False)
    for model in (Release, BulkUploadFile):
        db.query(model).filter(model.video_id.in_(ids)).update({model.video_id: None}, synchronize_session=False)

    for video in videos:
        _adjust_item_count(db, video.category_id, -1)
        db.delete(video)


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.USER
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    membershipId: Optional[int] = None


class UpdateUserRequest(BaseModel):
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    isActive: Optional[bool] = None
    membershipId: Optional[int] = None
    membershipEndDate: Optional[datetime] = None
    downloadsRemaining: Optional[int] = Field(None, ge=0)
    downloadsUsed: Optional[int] = Field(None, ge=0)
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)


class CreateVideoRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    videoUrl: Optional[str] = None
    videoKey: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    previewUrl: Optional[str] = None
    categoryId: Optional[int] = None
    duration: Optional[int] = Field(None, ge=0)
    resolution: Optional[str] = None
    fileSize: Optional[int] = Field(None, ge=0)
    isLoop: bool = False
    isPremium: bool = True
    isNew: bool = True
    isFeatured: bool = False


class UpdateVideoRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    videoUrl: Optional[str] = None
    videoKey: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    previewUrl: Optional[str] = None
    categoryId: Optional[int] = None
    duration: Optional[int] = Field(None, ge=0)
    resolution: Optional[str] = None
    fileSize: Optional[int] = Field(None, ge=0)
    isLoop: Optional[bool] = None
    isPremium: Optional[bool] = None
    isNew: Optional[bool] = None
    isFeatured: Optional[bool] = None


class BatchIdsRequest(BaseModel):
    videoIds: List[int] = Field(..., min_length=1)


class BatchCategoryRequest(BatchIdsRequest):
    categoryId: int


class BatchFlagRequest(BatchIdsRequest):
    value: bool


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    iconName: Optional[str] = None


class UpdateCategoryRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    iconName: Optional[str] = None


VIDEO_FIELDS = {
    "title": "title",
    "description": "description",
    "videoUrl": "video_url",
    "videoKey": "video_key",
    "thumbnailUrl": "thumbnail_url",
    "previewUrl": "preview_url",
    "categoryId": "category_id",
    "duration": "duration",
    "resolution": "resolution",
    "fileSize": "file_size",
    "isLoop": "is_loop",
    "isPremium": "is_premium",
    "isNew": "is_new",
    "isFeatured": "is_featured",
}


# ============================================
# Users
# ============================================

@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Username or email"),
    role: Optional[UserRole] = Query(None),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(desc(User.created_at), desc(User.id)).offset((page - 1) * limit).limit(limit).all()
    return {
        "users": [user.to_dict(include_membership=True) for user in users],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return _get_or_404(db, User, user_id, "User").to_dict(include_membership=True)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if db.query(User).filter(or_(User.username == request.username, User.email == request.email)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already exists"
        )
    if request.membershipId is not None:
        _get_or_404(db, Membership, request.membershipId, "Membership")

    user = User(
        username=request.username,
        email=request.email,
        password=hash_password(request.password),
        role=request.role,
        first_name=request.firstName,
        last_name=request.lastName,
        membership_id=request.membershipId,
        downloads_used=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"👤 Admin {current_admin.id} created user {user.id} ({user.role.value})")
    return {"message": "User created successfully", "user": user.to_dict(include_membership=True)}


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    request: UpdateUserRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Role, membership, activation and quota changes"""
    user = _get_or_404(db, User, user_id, "User")
    data = request.model_dump(exclude_unset=True)

    if data.get("email") and data["email"] != user.email:
        if db.query(User).filter(User.email == data["email"], User.id != user.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use"
            )
    if data.get("membershipId") is not None:
        _get_or_404(db, Membership, data["membershipId"], "Membership")

    field_map = {
        "email": "email",
        "role": "role",
        "isActive": "is_active",
        "membershipId": "membership_id",
        "membershipEndDate": "membership_end_date",
        "downloadsRemaining": "downloads_remaining",
        "downloadsUsed": "downloads_used",
        "firstName": "first_name",
        "lastName": "last_name",
    }
    for field, value in data.items():
        if field == "password":
            if value:
                user.password = hash_password(value)
        elif field in field_map:
            setattr(user, field_map[field], value)

    db.commit()
    db.refresh(user)
    return {"message": "User updated successfully", "user": user.to_dict(include_membership=True)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if user_id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )

    user = _get_or_404(db, User, user_id, "User")
    db.delete(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has downloads or library data; deactivate the account instead"
        )
    return {"message": "User deleted successfully", "id": user_id}


# ============================================
# Videos
# ============================================

@router.get("/videos")
async def list_all_videos(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by title or description"),
    categoryId: Optional[int] = Query(None),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    query = db.query(Video)

    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            (Video.title.ilike(search_pattern)) |
            (Video.description.ilike(search_pattern))
        )
    if categoryId:
        query = query.filter(Video.category_id == categoryId)

    total = query.count()
    videos = query.order_by(desc(Video.created_at), desc(Video.id)).offset((page - 1) * limit).limit(limit).all()

    return {
        "videos": [video.to_dict(include_category=True) for video in videos],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@router.post("/videos", status_code=status.HTTP_201_CREATED)
async def create_video(
    request: CreateVideoRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Create a video and tell its category's followers about it
    """
    _check_category(db, request.categoryId)

    video = Video(**{VIDEO_FIELDS[key]: value for key, value in request.model_dump().items()}, download_count=0)
    db.add(video)
    _adjust_item_count(db, video.category_id, 1)
    db.commit()
    db.refresh(video)

    notified = notify_new_video(db, video)
    logger.info(f"🎬 Video {video.id} created by admin {current_admin.id}, {notified} followers notified")

    return {
        "message": "Video created successfully",
        "video": video.to_dict(include_category=True)
    }


@router.get("/videos/{video_id}")
async def get_video_details(
    video_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return _get_or_404(db, Video, video_id, "Video").to_dict(include_category=True)


@router.put("/videos/{video_id}")
async def update_video(
    video_id: int,
    request: UpdateVideoRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Only provided fields are updated"""
    video = _get_or_404(db, Video, video_id, "Video")
    update_data = request.model_dump(exclude_unset=True)

    if "categoryId" in update_data and update_data["categoryId"] != video.category_id:
        _check_category(db, update_data["categoryId"])
        _adjust_item_count(db, video.category_id, -1)
        _adjust_item_count(db, update_data["categoryId"], 1)

    for field, value in update_data.items():
        setattr(video, VIDEO_FIELDS[field], value)

    db.commit()
    db.refresh(video)

    return {
        "message": "Video updated successfully",
        "video": video.to_dict(include_category=True)
    }


@router.delete("/videos/{video_id}")
async def delete_video(
    video_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Delete a video with its favorites, playlist entries, tags and download history

    Note: the file in storage is left in place.
    """
    video = _get_or_404(db, Video, video_id, "Video")
    video_title = video.title

    _delete_videos(db, [video])
    db.commit()

    return {
        "message": "Video deleted successfully",
        "deleted_video": {"id": video_id, "title": video_title},
    }


@router.post("/videos/batch-delete")
async def batch_delete_videos(
    request: BatchIdsRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    videos = db.query(Video).filter(Video.id.in_(request.videoIds)).all()
    _delete_videos(db, videos)
    db.commit()

    logger.info(f"🗑️ Admin {current_admin.id} deleted {len(videos)} videos")
    return {"deleted": len(videos)}


@router.post("/videos/batch-update-category")
async def batch_update_category(
    request: BatchCategoryRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    _check_category(db, request.categoryId)

    videos = db.query(Video).filter(Video.id.in_(request.videoIds)).all()
    for video in videos:
        if video.category_id != request.categoryId:
            _adjust_item_count(db, video.category_id, -1)
            _adjust_item_count(db, request.categoryId, 1)
            video.category_id = request.categoryId
    db.commit()

    return {"updated": len(videos)}


@router.post("/videos/batch-update-premium")
async def batch_update_premium(
    request: BatchFlagRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    updated = (
        db.query(Video)
        .filter(Video.id.in_(request.videoIds))
        .update({Video.is_premium: request.value}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.post("/videos/batch-update-featured")
async def batch_update_featured(
    request: BatchFlagRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    updated = (
        db.query(Video)
        .filter(Video.id.in_(request.videoIds))
        .update({Video.is_featured: request.value}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


# ============================================
# Categories
# ============================================

@router.get("/categories")
async def list_categories(
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return [category.to_dict() for category in db.query(Category).order_by(Category.name).all()]


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CategoryRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    slug = generate_slug(request.name)
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category name must contain letters or digits"
        )
    if db.query(Category).filter(or_(Category.slug == slug, Category.name == request.name)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Category '{request.name}' already exists"
        )

    category = Category(name=request.name, slug=slug, icon_name=request.iconName, item_count=0)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category.to_dict()


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    request: UpdateCategoryRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    category = _get_or_404(db, Category, category_id, "Category")

    if request.name and request.name != category.name:
        slug = generate_slug(request.name)
        clash = (
            db.query(Category)
            .filter(or_(Category.slug == slug, Category.name == request.name), Category.id != category.id)
            .first()
        )
        if clash:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Category '{request.name}' already exists"
            )
        category.name = request.name
        category.slug = slug

    if request.iconName is not None:
        category.icon_name = request.iconName

    db.commit()
    db.refresh(category)
    return category.to_dict()


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    category = _get_or_404(db, Category, category_id, "Category")

    in_use = db.query(Video.id).filter(Video.category_id == category.id).count()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete a category with {in_use} videos"
        )

    db.delete(category)
    db.commit()
    return {"message": "Category deleted successfully", "id": category_id}
