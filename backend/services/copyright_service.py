"""
Copyright Service
Content rights records, copyright claims and automated metadata analysis
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session

from models.video import Video
from models.moderation import (
    ContentRights,
    CopyrightClaim,
    ContentAnalysisResult,
    ClaimStatus,
    VerificationStatus,
)
from services import ai_service

logger = logging.getLogger(__name__)

FLAG_THRESHOLD = 60

# Phrases in titles/descriptions that suggest unlicensed source material
RISK_KEYWORDS: Dict[str, int] = {
    "official music video": 40,
    "official video": 35,
    "full movie": 45,
    "ripped": 40,
    "rip": 25,
    "bootleg": 35,
    "unreleased": 20,
    "leaked": 40,
    "copyrighted": 30,
    "vevo": 35,
    "trailer": 20,
    "remix": 10,
    "mashup": 15,
    "sample": 10,
}


class CopyrightError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _get_video(db: Session, video_id: int) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise CopyrightError("Video not found", status_code=404)
    return video


def keyword_analysis(title: str, description: Optional[str] = None) -> Dict[str, Any]:
    """Score metadata by risky phrases; confidence is capped at 100"""
    text = f"{title} {description or ''}".lower()
    concerns = []
    score = 0

    for phrase, weight in RISK_KEYWORDS.items():
        if re.search(rf"\b{re.escape(phrase)}\b", text):
            score += weight
            concerns.append({
                "type": "keyword",
                "description": f"Metadata mentions '{phrase}'",
                "severity": "high" if weight >= 35 else "medium" if weight >= 20 else "low",
            })

    confidence = min(score, 100)
    return {
        "potentialIssues": confidence >= FLAG_THRESHOLD,
        "confidence": confidence,
        "analysis": "Keyword heuristic",
        "concerns": concerns,
    }


def ai_analysis(video: Video) -> Optional[Dict[str, Any]]:
    """Ask Gemini to review the metadata; None when unavailable or unparseable"""
    prompt = (
        "You are a copyright analysis expert reviewing video metadata for a DJ/VJ video pool. "
        "Look for titles referencing protected works, unauthorized remixes or sampling, and rips. "
        'Respond only with JSON: {"potentialIssues": bool, "confidence": 0-100, "analysis": string, '
        '"concerns": [{"type": string, "description": string, "severity": "low"|"medium"|"high"}]}\n\n'
        f"Title: {video.title}\n"
        f"Description: {video.description or ''}\n"
        f"Category: {video.category.name if video.category else 'Unknown'}\n"
        f"Duration: {video.duration or 0} seconds"
    )

    parsed = ai_service.extract_json(ai_service.generate_text(prompt))
    if not isinstance(parsed, dict) or "confidence" not in parsed:
        return None

    try:
        parsed["confidence"] = max(0, min(100, int(parsed["confidence"])))
    except (TypeError, ValueError):
        return None
    parsed.setdefault("concerns", [])
    return parsed


def check_copyright(db: Session, video_id: int) -> ContentAnalysisResult:
    """
    Analyze a video's metadata and store the result.
    The video is flagged for review when confidence reaches 60.
    """
    video = _get_video(db, video_id)

    analysis = ai_analysis(video) if ai_service.is_enabled() else None
    source = "gemini"
    if analysis is None:
        analysis = keyword_analysis(video.title, video.description)
        source = "keywords"

    confidence = analysis["confidence"]
    flagged = confidence >= FLAG_THRESHOLD

    result = ContentAnalysisResult(
        video_id=video.id,
        analysis_type="copyright",
        result={
            "source": source,
            "analysis": analysis.get("analysis"),
            "issues": analysis.get("concerns", []),
        },
        confidence=confidence,
        status="flagged" if flagged else "clear",
        needs_review=flagged,
    )
    db.add(result)
    db.commit()
    db.refresh(result)

    logger.info(f"©️ Copyright check video={video.id} source={source} confidence={confidence} flagged={flagged}")
    return result


def get_analysis_history(db: Session, video_id: int) -> List[ContentAnalysisResult]:
    return (
        db.query(ContentAnalysisResult)
        .filter(ContentAnalysisResult.video_id == video_id)
        .order_by(desc(ContentAnalysisResult.processed_at), desc(ContentAnalysisResult.id))
        .all()
    )


def get_videos_needing_review(db: Session) -> List[ContentAnalysisResult]:
    return (
        db.query(ContentAnalysisResult)
        .filter(ContentAnalysisResult.needs_review.is_(True))
        .order_by(desc(ContentAnalysisResult.confidence))
        .all()
    )


def review_analysis(db: Session, result_id: int, reviewer_id: int, cleared: bool) -> ContentAnalysisResult:
    result = db.query(ContentAnalysisResult).filter(ContentAnalysisResult.id == result_id).first()
    if not result:
        raise CopyrightError("Analysis result not found", status_code=404)

    result.needs_review = False
    result.status = "clear" if cleared else "flagged"
    result.reviewed_by_id = reviewer_id
    result.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(result)
    return result


# ============================================
# Content rights
# ============================================

def get_content_rights(db: Session, video_id: int) -> Optional[ContentRights]:
    return db.query(ContentRights).filter(ContentRights.video_id == video_id).first()


def upsert_content_rights(db: Session, video_id: int, data: Dict[str, Any]) -> ContentRights:
    """Create or update the rights record; edits send it back to pending verification"""
    _get_video(db, video_id)

    rights = get_content_rights(db, video_id)
    if rights is None:
        rights = ContentRights(video_id=video_id)
        db.add(rights)

    for field, value in data.items():
        setattr(rights, field, value)
    rights.verification_status = VerificationStatus.PENDING
    rights.verification_date = None
    rights.verified_by_id = None

    db.commit()
    db.refresh(rights)
    return rights


def verify_content_rights(db: Session, video_id: int, reviewer_id: int, approved: bool, notes: Optional[str] = None) -> ContentRights:
    rights = get_content_rights(db, video_id)
    if not rights:
        raise CopyrightError("Content rights not found", status_code=404)

    rights.verification_status = VerificationStatus.VERIFIED if approved else VerificationStatus.REJECTED
    rights.verification_date = datetime.utcnow()
    rights.verified_by_id = reviewer_id
    if notes:
        rights.notes = notes

    db.commit()
    db.refresh(rights)
    return rights


# ============================================
# Claims
# ============================================

def submit_claim(db: Session, video_id: int, data: Dict[str, Any]) -> CopyrightClaim:
    _get_video(db, video_id)

    claim = CopyrightClaim(
        video_id=video_id,
        claimant_name=data["claimant_name"],
        claimant_email=data["claimant_email"],
        reason=data["reason"],
        evidence=data.get("evidence"),
        status=ClaimStatus.PENDING,
    )
    db.add(claim)
    db.commit()
    db.refresh(claim)

    logger.info(f"⚖️ Copyright claim {claim.id} filed against video {video_id}")
    return claim


def get_pending_claims(db: Session) -> List[CopyrightClaim]:
    return (
        db.query(CopyrightClaim)
        .filter(CopyrightClaim.status.in_([ClaimStatus.PENDING, ClaimStatus.REVIEWING]))
        .order_by(CopyrightClaim.created_at, CopyrightClaim.id)
        .all()
    )


def resolve_claim(db: Session, claim_id: int, reviewer_id: int, status: ClaimStatus, notes: Optional[str] = None) -> CopyrightClaim:
    if status not in (ClaimStatus.APPROVED, ClaimStatus.REJECTED):
        raise CopyrightError("Claims resolve to approved or rejected")

    claim = db.query(CopyrightClaim).filter(CopyrightClaim.id == claim_id).first()
    if not claim:
        raise CopyrightError("Claim not found", status_code=404)
    if claim.status in (ClaimStatus.APPROVED, ClaimStatus.REJECTED):
        raise CopyrightError("Claim already resolved", status_code=409)

    claim.status = status
    claim.resolution_notes = notes
    claim.resolved_by_id = reviewer_id
    claim.resolved_at = datetime.utcnow()
    db.commit()
    db.refresh(claim)
    return claim
