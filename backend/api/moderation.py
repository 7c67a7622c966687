"""
Moderation API endpoints
Content rights, automated copyright checks and third-party claims
"""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from core.database import get_db
from core.security import require_roles
from models.user import User, UserRole
from models.moderation import ClaimStatus
from services import copyright_service
from services.copyright_service import CopyrightError

logger = logging.getLogger(__name__)

router = APIRouter()
claims_router = APIRouter()

require_reviewer = require_roles(UserRole.REVIEWER, UserRole.MODERATOR)


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class ContentRightsRequest(BaseModel):
    rightsHolder: Optional[str] = None
    licenseType: Optional[str] = None
    licenseExpiration: Optional[datetime] = None
    documentationUrl: Optional[str] = None
    notes: Optional[str] = None


class VerifyRightsRequest(BaseModel):
    approved: bool
    notes: Optional[str] = None


class ReviewAnalysisRequest(BaseModel):
    cleared: bool


class ClaimRequest(BaseModel):
    videoId: int
    claimantName: str = Field(..., min_length=1, max_length=255)
    claimantEmail: EmailStr
    reason: str = Field(..., min_length=10)
    evidence: Optional[str] = None


class ResolveClaimRequest(BaseModel):
    status: str = Field(..., pattern="^(approved|rejected)$")
    notes: Optional[str] = None


def _raise(e: CopyrightError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


# ============================================
# Content rights
# ============================================

@router.get("/rights/{video_id}")
async def get_rights(
    video_id: int,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    rights = copyright_service.get_content_rights(db, video_id)
    if not rights:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Content rights not found"
        )
    return rights.to_dict()


@router.put("/rights/{video_id}")
async def upsert_rights(
    video_id: int,
    request: ContentRightsRequest,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """Create or edit the rights record; it goes back to pending verification"""
    field_map = {
        "rightsHolder": "rights_holder",
        "licenseType": "license_type",
        "licenseExpiration": "license_expiration",
        "documentationUrl": "documentation_url",
        "notes": "notes",
    }
    data = {field_map[k]: v for k, v in request.model_dump(exclude_unset=True).items()}
    try:
        return copyright_service.upsert_content_rights(db, video_id, data).to_dict()
    except CopyrightError as e:
        _raise(e)


@router.post("/rights/{video_id}/verify")
async def verify_rights(
    video_id: int,
    request: VerifyRightsRequest,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    try:
        rights = copyright_service.verify_content_rights(db, video_id, current_user.id, request.approved, request.notes)
    except CopyrightError as e:
        _raise(e)
    return rights.to_dict()


# ============================================
# Automated checks
# ============================================

@router.post("/videos/{video_id}/check")
async def check_video(
    video_id: int,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """Run the copyright analysis now and store the result"""
    try:
        return copyright_service.check_copyright(db, video_id).to_dict()
    except CopyrightError as e:
        _raise(e)


@router.get("/videos/{video_id}/analysis")
async def analysis_history(
    video_id: int,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    return [r.to_dict() for r in copyright_service.get_analysis_history(db, video_id)]


@router.get("/needs-review")
async def needs_review(
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    return [r.to_dict(include_video=True) for r in copyright_service.get_videos_needing_review(db)]


@router.post("/analysis/{result_id}/review")
async def review_analysis(
    result_id: int,
    request: ReviewAnalysisRequest,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    try:
        return copyright_service.review_analysis(db, result_id, current_user.id, request.cleared).to_dict()
    except CopyrightError as e:
        _raise(e)


# ============================================
# Claims
# ============================================

@router.get("/claims/pending")
async def pending_claims(
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    return [c.to_dict(include_video=True) for c in copyright_service.get_pending_claims(db)]


@router.post("/claims/{claim_id}/resolve")
async def resolve_claim(
    claim_id: int,
    request: ResolveClaimRequest,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    try:
        claim = copyright_service.resolve_claim(
            db, claim_id, current_user.id, ClaimStatus(request.status), request.notes
        )
    except CopyrightError as e:
        _raise(e)

    logger.info(f"⚖️ Claim {claim_id} {claim.status.value} by user {current_user.id}")
    return claim.to_dict()


@claims_router.post("/claims", status_code=status.HTTP_201_CREATED)
async def submit_claim(
    request: ClaimRequest,
    db: Session = Depends(get_db)
):
    """Public form for rights holders"""
    data = {
        "claimant_name": request.claimantName,
        "claimant_email": request.claimantEmail,
        "reason": request.reason,
        "evidence": request.evidence,
    }
    try:
        claim = copyright_service.submit_claim(db, request.videoId, data)
    except CopyrightError as e:
        _raise(e)
    return {"message": "Claim submitted", "claim": claim.to_dict()}
