"""
Moderation models - content rights, copyright claims, automated analysis results
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from .base import Base


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentRights(Base):
    """Licensing record of a video"""
    __tablename__ = "content_rights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), unique=True, nullable=False)
    rights_holder = Column("rightsHolder", String(255), nullable=True)
    license_type = Column("licenseType", String(100), nullable=True)
    license_expiration = Column("licenseExpiration", DateTime, nullable=True)
    verification_status = Column(
        "verificationStatus", SQLEnum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False
    )
    verification_date = Column("verificationDate", DateTime, nullable=True)
    verified_by_id = Column("verifiedById", Integer, ForeignKey("users.id"), nullable=True)
    documentation_url = Column("documentationUrl", Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "videoId": self.video_id,
            "rightsHolder": self.rights_holder,
            "licenseType": self.license_type,
            "licenseExpiration": self.license_expiration.isoformat() if self.license_expiration else None,
            "verificationStatus": self.verification_status.value,
            "verificationDate": self.verification_date.isoformat() if self.verification_date else None,
            "verifiedById": self.verified_by_id,
            "documentationUrl": self.documentation_url,
            "notes": self.notes,
        }


class CopyrightClaim(Base):
    """Third-party claim against a video"""
    __tablename__ = "copyright_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False, index=True)
    claimant_name = Column("claimantName", String(255), nullable=False)
    claimant_email = Column("claimantEmail", String(320), nullable=False)
    reason = Column(Text, nullable=False)
    evidence = Column(Text, nullable=True)
    status = Column(SQLEnum(ClaimStatus), default=ClaimStatus.PENDING, nullable=False, index=True)
    resolution_notes = Column("resolutionNotes", Text, nullable=True)
    resolved_by_id = Column("resolvedById", Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column("resolvedAt", DateTime, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    video = relationship("Video")

    def to_dict(self, include_video=False):
        data = {
            "id": self.id,
            "videoId": self.video_id,
            "claimantName": self.claimant_name,
            "claimantEmail": self.claimant_email,
            "reason": self.reason,
            "evidence": self.evidence,
            "status": self.status.value,
            "resolutionNotes": self.resolution_notes,
            "resolvedById": self.resolved_by_id,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_video:
            data["video"] = self.video.to_dict() if self.video else None
        return data


class ContentAnalysisResult(Base):
    """Output of an automated check (copyright, tagging) on a video"""
    __tablename__ = "content_analysis_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column("videoId", Integer, ForeignKey("videos.id"), nullable=False, index=True)
    analysis_type = Column("analysisType", String(50), nullable=False)
    result = Column(JSON, nullable=True)
    confidence = Column(Integer, default=0, nullable=False)  # 0-100
    status = Column(String(20), default="clear", nullable=False)  # clear / flagged
    needs_review = Column("needsReview", Boolean, default=False, nullable=False)
    reviewed_by_id = Column("reviewedById", Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column("reviewedAt", DateTime, nullable=True)
    processed_at = Column("processedAt", DateTime, default=func.now(), nullable=False)

    video = relationship("Video")

    def to_dict(self, include_video=False):
        data = {
            "id": self.id,
            "videoId": self.video_id,
            "analysisType": self.analysis_type,
            "result": self.result,
            "confidence": self.confidence,
            "status": self.status,
            "needsReview": self.needs_review,
            "reviewedById": self.reviewed_by_id,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
        }
        if include_video:
            data["video"] = self.video.to_dict() if self.video else None
        return data
