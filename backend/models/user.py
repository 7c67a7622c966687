"""
User model - Core authentication, authorization and download quota
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import enum

from .base import Base


class UserRole(str, enum.Enum):
    """User role enumeration"""
    USER = "user"
    ADMIN = "admin"
    UPLOADER = "uploader"
    REVIEWER = "reviewer"
    PROMOTER = "promoter"
    ANALYTICS = "analytics"
    MODERATOR = "moderator"


class User(Base):
    """
    Core user table backing auth flow.
    Carries the membership window and the per-period download quota.
    """
    __tablename__ = "users"

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Credentials
    username = Column(String(64), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    email = Column(String(320), unique=True, nullable=False, index=True)

    # Role-based access control
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)

    # Membership and quota
    membership_id = Column("membershipId", Integer, ForeignKey("memberships.id"), nullable=True)
    membership_start_date = Column("membershipStartDate", DateTime, nullable=True)
    membership_end_date = Column("membershipEndDate", DateTime, nullable=True)
    downloads_remaining = Column("downloadsRemaining", Integer, nullable=True)
    downloads_used = Column("downloadsUsed", Integer, default=0, nullable=False)

    # Profile
    profile_image_url = Column("profileImageUrl", String(500), nullable=True)
    first_name = Column("firstName", String(100), nullable=True)
    last_name = Column("lastName", String(100), nullable=True)
    phone = Column(String(32), nullable=True)

    is_active = Column("isActive", Boolean, default=True, nullable=False)

    # Timestamps
    last_login = Column("lastLogin", DateTime, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
    updated_at = Column("updatedAt", DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    membership = relationship("Membership")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"

    def is_admin(self) -> bool:
        """Check if user has admin privileges"""
        return self.role == UserRole.ADMIN

    def has_active_membership(self, now: datetime = None) -> bool:
        """A membership counts only while its end date is in the future"""
        now = now or datetime.utcnow()
        return (
            self.membership_id is not None
            and self.membership_end_date is not None
            and self.membership_end_date > now
        )

    def to_dict(self, include_membership=False):
        """Convert to dictionary for API responses"""
        data = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "membershipId": self.membership_id,
            "membershipStartDate": self.membership_start_date.isoformat() if self.membership_start_date else None,
            "membershipEndDate": self.membership_end_date.isoformat() if self.membership_end_date else None,
            "downloadsRemaining": self.downloads_remaining,
            "downloadsUsed": self.downloads_used,
            "profileImageUrl": self.profile_image_url,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "isActive": self.is_active,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_membership:
            data["membership"] = self.membership.to_dict() if self.membership else None
            data["hasActiveMembership"] = self.has_active_membership()

        return data
