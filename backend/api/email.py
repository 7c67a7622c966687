"""
Email marketing API endpoints
Admin campaign and subscriber management, plus the public unsubscribe and tracking links
"""
import base64
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session
from sqlalchemy import desc
from pydantic import BaseModel, Field
from typing import Optional, List

from core.database import get_db
from core.security import require_roles
from models.user import User, UserRole
from models.email import EmailCampaign, EmailSubscriber, CampaignStatus
from services import email_campaigns
from services.email_service import EmailCampaignError, generate_newsletter_content
from workers.email_tasks import send_campaign

logger = logging.getLogger(__name__)

admin_router = APIRouter()
public_router = APIRouter()

require_promoter = require_roles(UserRole.PROMOTER)

# 1x1 transparent GIF returned by the open tracking pixel
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class SegmentOptions(BaseModel):
    membershipId: Optional[int] = None
    downloadsMin: Optional[int] = Field(None, ge=0)
    downloadsMax: Optional[int] = Field(None, ge=0)
    lastLoginDays: Optional[int] = Field(None, ge=1)


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1, max_length=255)
    htmlContent: str = Field(..., min_length=1)
    textContent: Optional[str] = None
    sendRate: Optional[int] = Field(None, ge=1, le=100000)
    segmentOptions: Optional[SegmentOptions] = None


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    htmlContent: Optional[str] = None
    textContent: Optional[str] = None
    sendRate: Optional[int] = Field(None, ge=1, le=100000)
    segmentOptions: Optional[SegmentOptions] = None


class ScheduleRequest(BaseModel):
    scheduledTime: datetime


class NewsletterRequest(BaseModel):
    videoIds: List[int] = Field(default_factory=list)
    promotionalText: Optional[str] = None
    segment: Optional[str] = None


class SubscriberUpdate(BaseModel):
    isSubscribed: bool


def _raise(e: EmailCampaignError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


def _segment(options: Optional[SegmentOptions]):
    # membershipId=null is a filter of its own, so only drop fields never sent
    return options.model_dump(exclude_unset=True) if options else None


def _campaign(db: Session, campaign_id: int) -> EmailCampaign:
    try:
        return email_campaigns.get_campaign_or_404(db, campaign_id)
    except EmailCampaignError as e:
        _raise(e)


# ============================================
# Campaigns
# ============================================

@admin_router.get("/campaigns")
async def list_campaigns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(draft|scheduled|sending|complete|cancelled)$"),
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    """Campaigns newest first"""
    query = db.query(EmailCampaign)
    if status_filter:
        query = query.filter(EmailCampaign.status == CampaignStatus(status_filter))

    total = query.count()
    campaigns = (
        query.order_by(desc(EmailCampaign.created_at), desc(EmailCampaign.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "campaigns": [c.to_dict() for c in campaigns],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@admin_router.post("/campaigns", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreate,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    data = {
        "name": request.name,
        "subject": request.subject,
        "html_content": request.htmlContent,
        "text_content": request.textContent,
        "send_rate": request.sendRate,
        "segment_options": _segment(request.segmentOptions),
    }
    try:
        return email_campaigns.create_campaign(db, data, created_by=current_user).to_dict()
    except EmailCampaignError as e:
        _raise(e)


@admin_router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: int,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    campaign = _campaign(db, campaign_id)
    data = campaign.to_dict()
    data["stats"] = email_campaigns.campaign_stats(db, campaign)
    return data


@admin_router.put("/campaigns/{campaign_id}")
async def update_campaign(
    campaign_id: int,
    request: CampaignUpdate,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    campaign = _campaign(db, campaign_id)

    field_map = {
        "name": "name",
        "subject": "subject",
        "htmlContent": "html_content",
        "textContent": "text_content",
        "sendRate": "send_rate",
    }
    sent = request.model_dump(exclude_unset=True)
    changes = {field_map[key]: value for key, value in sent.items() if key in field_map}
    if "segmentOptions" in sent:
        changes["segment_options"] = _segment(request.segmentOptions)

    try:
        return email_campaigns.update_campaign(db, campaign, changes).to_dict()
    except EmailCampaignError as e:
        _raise(e)


@admin_router.delete("/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: int,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    campaign = _campaign(db, campaign_id)
    try:
        email_campaigns.delete_campaign(db, campaign)
    except EmailCampaignError as e:
        _raise(e)
    return {"message": "Campaign deleted"}


@admin_router.post("/campaigns/{campaign_id}/schedule")
async def schedule_campaign(
    campaign_id: int,
    request: ScheduleRequest,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    """Schedule delivery; the beat task starts it when due"""
    campaign = _campaign(db, campaign_id)
    try:
        return email_campaigns.schedule_campaign(db, campaign, request.scheduledTime).to_dict()
    except EmailCampaignError as e:
        _raise(e)


@admin_router.post("/campaigns/{campaign_id}/cancel")
async def cancel_campaign(
    campaign_id: int,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    campaign = _campaign(db, campaign_id)
    try:
        return email_campaigns.cancel_scheduled_campaign(db, campaign).to_dict()
    except EmailCampaignError as e:
        _raise(e)


@admin_router.post("/campaigns/{campaign_id}/send-now")
async def send_now(
    campaign_id: int,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    """
    Start sending immediately
    Emails go out from the worker at the campaign's hourly rate
    """
    campaign = _campaign(db, campaign_id)
    try:
        email_campaigns.start_sending(db, campaign)
    except EmailCampaignError as e:
        _raise(e)

    send_campaign.delay(campaign.id)
    logger.info(f"🚀 Campaign {campaign.id} dispatched by user {current_user.id}")

    db.refresh(campaign)
    return {"message": "Campaign sending started", "campaign": campaign.to_dict()}


@admin_router.post("/generate-newsletter")
async def generate_newsletter(
    request: NewsletterRequest,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    """Draft newsletter subject and bodies for the given videos"""
    return generate_newsletter_content(db, request.videoIds, request.promotionalText, request.segment)


# ============================================
# Subscribers
# ============================================

@admin_router.get("/subscribers")
async def list_subscribers(
    search: Optional[str] = Query(None, description="Search by email"),
    subscribed: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    query = db.query(EmailSubscriber)
    if search:
        query = query.filter(EmailSubscriber.email.ilike(f"%{search}%"))
    if subscribed is not None:
        query = query.filter(EmailSubscriber.is_subscribed.is_(subscribed))

    total = query.count()
    subscribers = (
        query.order_by(desc(EmailSubscriber.created_at), desc(EmailSubscriber.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "subscribers": [s.to_dict() for s in subscribers],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@admin_router.put("/subscribers/{subscriber_id}")
async def update_subscriber(
    subscriber_id: int,
    request: SubscriberUpdate,
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    subscriber = db.query(EmailSubscriber).filter(EmailSubscriber.id == subscriber_id).first()
    if not subscriber:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscriber not found"
        )
    return email_campaigns.set_subscription(db, subscriber, request.isSubscribed).to_dict()


@admin_router.post("/subscribers/import-users")
async def import_users(
    current_user: User = Depends(require_promoter),
    db: Session = Depends(get_db)
):
    """Create subscriber rows for registered users that have none"""
    return email_campaigns.import_users(db)


# ============================================
# Public links (unsubscribe and tracking)
# ============================================

@public_router.get("/unsubscribe")
async def unsubscribe(
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db)
):
    try:
        subscriber = email_campaigns.unsubscribe_email(db, email)
    except EmailCampaignError as e:
        _raise(e)
    return {"message": "You have been unsubscribed", "email": subscriber.email}


@public_router.get("/track/open/{send_id}")
async def track_open(send_id: int, db: Session = Depends(get_db)):
    email_campaigns.record_open(db, send_id)
    return Response(
        content=TRACKING_PIXEL,
        media_type="image/gif",
        headers={"Cache-Control": "no-store"},
    )


@public_router.get("/track/click/{send_id}")
async def track_click(
    send_id: int,
    url: str = Query(..., description="Destination URL"),
    db: Session = Depends(get_db)
):
    if url.startswith("//") or not url.startswith(("http://", "https://", "/")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid redirect URL"
        )
    email_campaigns.record_click(db, send_id)
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)
