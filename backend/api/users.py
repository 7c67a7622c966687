"""
User profile and download history endpoints
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from core.database import get_db
from core.security import get_current_user
from models.user import User
from services.download_service import get_download_history

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class ProfileUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    profileImageUrl: Optional[str] = None
    email: Optional[EmailStr] = None


# ============================================
# Profile Endpoints
# ============================================

@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user.to_dict(include_membership=True)


@router.put("/profile")
async def update_profile(
    request: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update profile fields; a new email must not belong to another account"""
    if request.email and request.email != current_user.email:
        taken = db.query(User).filter(User.email == request.email, User.id != current_user.id).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use"
            )
        current_user.email = request.email

    if request.firstName is not None:
        current_user.first_name = request.firstName
    if request.lastName is not None:
        current_user.last_name = request.lastName
    if request.phone is not None:
        current_user.phone = request.phone
    if request.profileImageUrl is not None:
        current_user.profile_image_url = request.profileImageUrl

    db.commit()
    db.refresh(current_user)
    return current_user.to_dict(include_membership=True)


# ============================================
# Download History
# ============================================

@router.get("/downloads")
async def list_downloads(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Full download history with videos"""
    downloads = get_download_history(db, current_user.id, limit=None)
    return [d.to_dict(include_video=True) for d in downloads]


@router.get("/downloads/recent")
async def recent_downloads(
    limit: int = Query(5, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    downloads = get_download_history(db, current_user.id, limit=limit)
    return [d.to_dict(include_video=True) for d in downloads]
