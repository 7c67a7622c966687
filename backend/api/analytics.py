"""
Admin analytics endpoints
Dashboard metrics, top content, category and engagement reports
"""
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.security import require_roles
from models.user import User, UserRole
from services import analytics_service

router = APIRouter()

require_analytics = require_roles(UserRole.ANALYTICS)


def _check_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must be before endDate"
        )


@router.get("/statistics")
async def statistics(
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    """Site-wide totals"""
    return analytics_service.get_statistics(db)


@router.get("/analytics/dashboard")
async def dashboard(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    """
    Dashboard metrics for a date window (default: last 30 days)
    """
    _check_window(startDate, endDate)
    return analytics_service.get_dashboard_metrics(db, startDate, endDate)


@router.get("/analytics/top-content")
async def top_content(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    _check_window(startDate, endDate)
    return analytics_service.get_top_content(db, startDate, endDate, limit)


@router.get("/analytics/categories")
async def category_analytics(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    _check_window(startDate, endDate)
    return analytics_service.get_category_analytics(db, startDate, endDate)


@router.get("/analytics/engagement")
async def engagement(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    _check_window(startDate, endDate)
    return analytics_service.get_engagement_metrics(db, startDate, endDate)


@router.get("/analytics/search")
async def search_analytics(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db)
):
    _check_window(startDate, endDate)
    return analytics_service.get_search_analytics(db, startDate, endDate, limit)
