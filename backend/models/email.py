"""
Email marketing models - Campaigns, Subscribers, per-recipient Sends
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from .base import Base


class CampaignStatus(str, enum.Enum):
    """Campaign lifecycle"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class SendStatus(str, enum.Enum):
    """Delivery state of one campaign email"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    OPENED = "opened"
    CLICKED = "clicked"


class EmailCampaign(Base):
    """
    Bulk email to a filtered user segment, sent at a fixed hourly rate
    """
    __tablename__ = "email_campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    html_content = Column("htmlContent", Text, nullable=False)
    text_content = Column("textContent", Text, nullable=True)
    status = Column(SQLEnum(CampaignStatus), default=CampaignStatus.DRAFT, nullable=False, index=True)
    send_rate = Column("sendRate", Integer, default=100, nullable=False)  # emails per hour
    scheduled_time = Column("scheduledTime", DateTime, nullable=True)
    segment_options = Column("segmentOptions", JSON, nullable=True)

    # Counters
    sent_count = Column("sentCount", Integer, default=0, nullable=False)
    failed_count = Column("failedCount", Integer, default=0, nullable=False)
    open_count = Column("openCount", Integer, default=0, nullable=False)
    click_count = Column("clickCount", Integer, default=0, nullable=False)

    created_by_id = Column("createdById", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)
    updated_at = Column("updatedAt", DateTime, default=func.now(), onupdate=func.now(), nullable=False)
    completed_at = Column("completedAt", DateTime, nullable=True)

    sends = relationship("EmailSend", back_populates="campaign", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<EmailCampaign(id={self.id}, name={self.name}, status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "htmlContent": self.html_content,
            "textContent": self.text_content,
            "status": self.status.value,
            "sendRate": self.send_rate,
            "scheduledTime": self.scheduled_time.isoformat() if self.scheduled_time else None,
            "segmentOptions": self.segment_options,
            "sentCount": self.sent_count,
            "failedCount": self.failed_count,
            "openCount": self.open_count,
            "clickCount": self.click_count,
            "createdById": self.created_by_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


class EmailSubscriber(Base):
    """Marketing opt-in state of one address"""
    __tablename__ = "email_subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    is_subscribed = Column("isSubscribed", Boolean, default=True, nullable=False)
    unsubscribed_at = Column("unsubscribedAt", DateTime, nullable=True)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    user = relationship("User")

    def __repr__(self):
        return f"<EmailSubscriber(id={self.id}, email={self.email}, subscribed={self.is_subscribed})>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "email": self.email,
            "isSubscribed": self.is_subscribed,
            "unsubscribedAt": self.unsubscribed_at.isoformat() if self.unsubscribed_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class EmailSend(Base):
    """One campaign email to one subscriber"""
    __tablename__ = "email_sends"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column("campaignId", Integer, ForeignKey("email_campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    subscriber_id = Column("subscriberId", Integer, ForeignKey("email_subscribers.id"), nullable=True)
    email = Column(String(320), nullable=False)
    status = Column(SQLEnum(SendStatus), default=SendStatus.PENDING, nullable=False, index=True)
    sent_at = Column("sentAt", DateTime, nullable=True)
    opened_at = Column("openedAt", DateTime, nullable=True)
    clicked_at = Column("clickedAt", DateTime, nullable=True)
    error_message = Column("errorMessage", Text, nullable=True)

    campaign = relationship("EmailCampaign", back_populates="sends")
    subscriber = relationship("EmailSubscriber")

    def to_dict(self):
        return {
            "id": self.id,
            "campaignId": self.campaign_id,
            "subscriberId": self.subscriber_id,
            "email": self.email,
            "status": self.status.value,
            "sentAt": self.sent_at.isoformat() if self.sent_at else None,
            "openedAt": self.opened_at.isoformat() if self.opened_at else None,
            "clickedAt": self.clicked_at.isoformat() if self.clicked_at else None,
            "errorMessage": self.error_message,
        }
