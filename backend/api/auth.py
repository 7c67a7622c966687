"""
Authentication API endpoints
Handles registration, login, logout and the JWT auth cookie
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session
from sqlalchemy import or_
from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime
from typing import Optional

from core.config import settings
from core.database import get_db
from core.security import create_access_token, get_current_user, verify_password, hash_password
from models.user import User, UserRole
from services.email_campaigns import ensure_subscriber

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class LoginRequest(BaseModel):
    """Login with username or email"""
    username: Optional[str] = None
    email: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def check_identifier(self):
        if not self.username and not self.email:
            raise ValueError("username or email is required")
        return self


class RegisterRequest(BaseModel):
    """Registration request payload"""
    username: str = Field(..., min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=6)
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class TokenResponse(BaseModel):
    """Token response"""
    access_token: str
    token_type: str = "bearer"
    user: dict


# ============================================
# Helpers
# ============================================

def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.JWT_EXPIRE_MINUTES * 60,
        samesite="lax",
        secure=settings.ENV == "production",
    )


# ============================================
# Authentication Endpoints
# ============================================

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Register a new member account and opt its email into marketing
    """
    if db.query(User).filter(User.username == request.username).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists"
        )

    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists"
        )

    new_user = User(
        username=request.username,
        email=request.email,
        password=hash_password(request.password),
        first_name=request.firstName,
        last_name=request.lastName,
        role=UserRole.USER,
        downloads_used=0,
    )
    db.add(new_user)
    db.flush()

    ensure_subscriber(db, new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"👤 Registered user {new_user.id} ({new_user.username})")

    access_token = create_access_token(data={"sub": new_user.id})
    _set_auth_cookie(response, access_token)

    return TokenResponse(
        access_token=access_token,
        user=new_user.to_dict(include_membership=True)
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Login with username or email and password
    Returns the JWT and sets the auth cookie
    """
    identifier = request.username or request.email
    user = (
        db.query(User)
        .filter(or_(User.username == identifier, User.email == identifier))
        .first()
    )

    if not user or not verify_password(request.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )

    # Update last login timestamp
    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    access_token = create_access_token(data={"sub": user.id})
    _set_auth_cookie(response, access_token)

    return TokenResponse(
        access_token=access_token,
        user=user.to_dict(include_membership=True)
    )


@router.get("/me")
async def get_current_user_profile(
    current_user: User = Depends(get_current_user)
):
    """
    Current authenticated user with membership details
    """
    return current_user.to_dict(include_membership=True)


@router.post("/logout")
async def logout(response: Response):
    """
    Clear the auth cookie
    JWTs are stateless; Bearer clients simply discard their token
    """
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"message": "Logged out successfully"}
