"""
API key management and the key-authenticated public API (/api/v1)
"""
import time
import logging
from datetime import datetime
from typing import Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from sqlalchemy.orm import Session
from sqlalchemy import desc
from pydantic import BaseModel, Field

from core.database import get_db, get_db_context
from core.security import get_current_user, get_api_key_user
from models.user import User
from models.video import Video
from models.api_key import ApiKey
from services import api_key_service

logger = logging.getLogger(__name__)


class ApiUsageRoute(APIRoute):
    """Route class that records every API-key request with its status and latency"""

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def usage_logging_handler(request: Request) -> Response:
            started = time.perf_counter()
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            try:
                response = await original_handler(request)
                status_code = response.status_code
                return response
            except HTTPException as e:
                status_code = e.status_code
                raise
            except RequestValidationError:
                status_code = status.HTTP_400_BAD_REQUEST
                raise
            finally:
                api_key_id = getattr(request.state, "api_key_id", None)
                if api_key_id is not None:
                    elapsed_ms = int((time.perf_counter() - started) * 1000)
                    _record_usage(request, api_key_id, status_code, elapsed_ms)

        return usage_logging_handler


def _record_usage(request: Request, api_key_id: int, status_code: int, elapsed_ms: int) -> None:
    with get_db_context() as db:
        api_key = db.query(ApiKey).filter(ApiKey.id == api_key_id).first()
        if api_key is None:
            return
        api_key_service.log_usage(
            db,
            api_key,
            endpoint=request.url.path,
            method=request.method,
            status_code=status_code,
            response_time_ms=elapsed_ms,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )


router = APIRouter()
v1_router = APIRouter(route_class=ApiUsageRoute)


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class CreateApiKeyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    scopes: Optional[List[str]] = None
    expiresAt: Optional[datetime] = None


# ============================================
# Key management (logged-in users)
# ============================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_api_key(
    request: CreateApiKeyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Generate a key. The full key is only returned here; store it safely.
    """
    api_key = api_key_service.create_api_key(
        db, current_user.id, request.name, request.scopes, request.expiresAt
    )
    return api_key.to_dict(reveal_key=True)


@router.get("")
async def list_api_keys(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [key.to_dict() for key in api_key_service.list_api_keys(db, current_user.id)]


@router.delete("/{key_id}")
async def revoke_api_key(
    key_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not api_key_service.revoke_api_key(db, current_user.id, key_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API key not found"
        )
    return {"message": "API key revoked"}


@router.get("/usage")
async def usage_stats(
    period: str = Query("month", pattern="^(day|week|month)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return api_key_service.get_usage_stats(db, current_user.id, period)


# ============================================
# Public API v1 (X-API-Key)
# ============================================

@v1_router.get("/videos")
async def v1_list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[int] = Query(None),
    user: User = Depends(get_api_key_user),
    db: Session = Depends(get_db)
):
    query = db.query(Video)
    if category:
        query = query.filter(Video.category_id == category)

    total = query.count()
    videos = query.order_by(desc(Video.created_at), desc(Video.id)).offset((page - 1) * limit).limit(limit).all()
    return {
        "videos": [video.to_dict(include_category=True) for video in videos],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@v1_router.get("/videos/{video_id}")
async def v1_get_video(
    video_id: int,
    user: User = Depends(get_api_key_user),
    db: Session = Depends(get_db)
):
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found"
        )
    return video.to_dict(include_category=True)


@v1_router.get("/me")
async def v1_me(user: User = Depends(get_api_key_user)):
    return user.to_dict(include_membership=True)
