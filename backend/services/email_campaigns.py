"""
Email campaign lifecycle, subscriber management and tracking
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import settings
from models.user import User
from models.email import EmailCampaign, EmailSubscriber, EmailSend, CampaignStatus, SendStatus
from services.email_service import (
    EmailCampaignError,
    get_segment_recipients,
    personalization_context,
    personalize_template,
    send_email,
    send_schedule,
    validate_template,
)

logger = logging.getLogger(__name__)

EDIT_LOCKED_STATUSES = (CampaignStatus.SENDING, CampaignStatus.COMPLETE)


# ============================================
# Campaigns
# ============================================

def get_campaign_or_404(db: Session, campaign_id: int) -> EmailCampaign:
    campaign = db.query(EmailCampaign).filter(EmailCampaign.id == campaign_id).first()
    if not campaign:
        raise EmailCampaignError("Campaign not found", status_code=404)
    return campaign


def create_campaign(db: Session, data: Dict[str, Any], created_by: Optional[User] = None) -> EmailCampaign:
    """New campaigns always start as drafts"""
    validate_template(data.get("html_content"))
    validate_template(data.get("text_content"))

    campaign = EmailCampaign(
        name=data["name"],
        subject=data["subject"],
        html_content=data["html_content"],
        text_content=data.get("text_content"),
        send_rate=data.get("send_rate") or settings.EMAIL_DEFAULT_SEND_RATE,
        segment_options=data.get("segment_options"),
        status=CampaignStatus.DRAFT,
        created_by_id=created_by.id if created_by else None,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)

    logger.info(f"✉️ Campaign created: id={campaign.id}, name={campaign.name}")
    return campaign


def update_campaign(db: Session, campaign: EmailCampaign, changes: Dict[str, Any]) -> EmailCampaign:
    if campaign.status in EDIT_LOCKED_STATUSES:
        raise EmailCampaignError(f"Cannot update a campaign that is {campaign.status.value}")

    if "html_content" in changes:
        validate_template(changes["html_content"])
    if "text_content" in changes:
        validate_template(changes["text_content"])

    for field, value in changes.items():
        setattr(campaign, field, value)

    db.commit()
    db.refresh(campaign)
    return campaign


def delete_campaign(db: Session, campaign: EmailCampaign) -> None:
    if campaign.status == CampaignStatus.SENDING:
        raise EmailCampaignError("Cannot delete a campaign that is currently sending")

    if campaign.status == CampaignStatus.SCHEDULED:
        cancel_scheduled_campaign(db, campaign)

    db.delete(campaign)
    db.commit()
    logger.info(f"🗑️ Campaign deleted: id={campaign.id}")


def schedule_campaign(db: Session, campaign: EmailCampaign, scheduled_time: datetime, now: Optional[datetime] = None) -> EmailCampaign:
    """
    Mark a campaign for delivery at scheduled_time (UTC).
    The beat task dispatch_scheduled_campaigns starts it when due.
    """
    now = now or datetime.utcnow()

    if campaign.status in EDIT_LOCKED_STATUSES:
        raise EmailCampaignError(f"Cannot schedule a campaign that is {campaign.status.value}")

    if scheduled_time.tzinfo is not None:
        scheduled_time = scheduled_time.astimezone(timezone.utc).replace(tzinfo=None)

    if scheduled_time <= now:
        raise EmailCampaignError("Scheduled time must be in the future")

    campaign.scheduled_time = scheduled_time
    campaign.status = CampaignStatus.SCHEDULED
    db.commit()
    db.refresh(campaign)

    logger.info(f"🗓️ Campaign {campaign.id} scheduled for {scheduled_time.isoformat()}")
    return campaign


def cancel_scheduled_campaign(db: Session, campaign: EmailCampaign) -> EmailCampaign:
    if campaign.status != CampaignStatus.SCHEDULED:
        raise EmailCampaignError("Only scheduled campaigns can be cancelled")

    campaign.status = CampaignStatus.DRAFT
    campaign.scheduled_time = None
    db.commit()
    db.refresh(campaign)
    return campaign


def start_sending(db: Session, campaign: EmailCampaign) -> EmailCampaign:
    """Flip a draft or scheduled campaign to sending. Delivery happens in the worker."""
    if campaign.status in EDIT_LOCKED_STATUSES:
        raise EmailCampaignError(f"Campaign is already {campaign.status.value}")

    campaign.status = CampaignStatus.SENDING
    db.commit()
    db.refresh(campaign)
    return campaign


def due_campaign_ids(db: Session, now: Optional[datetime] = None) -> List[int]:
    """Scheduled campaigns whose time has come, switched to sending"""
    now = now or datetime.utcnow()

    due = (
        db.query(EmailCampaign)
        .filter(EmailCampaign.status == CampaignStatus.SCHEDULED)
        .filter(EmailCampaign.scheduled_time <= now)
        .all()
    )
    for campaign in due:
        campaign.status = CampaignStatus.SENDING
    db.commit()

    return [campaign.id for campaign in due]


def queue_campaign_sends(db: Session, campaign: EmailCampaign) -> List[Tuple[int, int]]:
    """
    Create one pending send per segment recipient

    Returns:
        (send_id, countdown_seconds) pairs spaced by the campaign's send rate
    """
    recipients = get_segment_recipients(db, campaign.segment_options)

    already_queued = {
        row.email for row in db.query(EmailSend.email).filter(EmailSend.campaign_id == campaign.id)
    }

    sends = []
    for subscriber, _user in recipients:
        if subscriber.email in already_queued:
            continue
        send = EmailSend(
            campaign_id=campaign.id,
            subscriber_id=subscriber.id,
            email=subscriber.email,
            status=SendStatus.PENDING,
        )
        db.add(send)
        sends.append(send)

    db.commit()

    pending_ids = [send.id for send in sends]
    if not pending_ids:
        complete_if_finished(db, campaign)

    logger.info(f"📬 Campaign {campaign.id}: queued {len(pending_ids)} emails at {campaign.send_rate}/hour")
    return list(zip(pending_ids, send_schedule(len(pending_ids), campaign.send_rate)))


def deliver_send(db: Session, send_id: int) -> bool:
    """
    Render and send one queued email, then update campaign counters.
    Sends already resolved, or belonging to a campaign no longer sending, are skipped.

    Returns:
        bool: True if a delivery was attempted, False if the send was skipped
    """
    send = db.query(EmailSend).filter(EmailSend.id == send_id).first()
    if not send or send.status != SendStatus.PENDING:
        return False

    campaign = send.campaign
    if campaign.status != CampaignStatus.SENDING:
        logger.info(f"Skipping send {send_id}: campaign {campaign.id} is {campaign.status.value}")
        return False

    user = send.subscriber.user if send.subscriber else None
    context = personalization_context(send.email, user)

    html = personalize_template(campaign.html_content, context, html=True)
    text = personalize_template(campaign.text_content, context) if campaign.text_content else None
    subject = personalize_template(campaign.subject, context)

    if send_email(send.email, subject, html, text):
        send.status = SendStatus.SENT
        send.sent_at = datetime.utcnow()
        campaign.sent_count = (campaign.sent_count or 0) + 1
    else:
        send.status = SendStatus.FAILED
        send.error_message = "SMTP delivery failed"
        campaign.failed_count = (campaign.failed_count or 0) + 1

    db.commit()
    complete_if_finished(db, campaign)
    return True


def complete_if_finished(db: Session, campaign: EmailCampaign) -> bool:
    """Mark a sending campaign complete once no send is pending"""
    if campaign.status != CampaignStatus.SENDING:
        return False

    pending = (
        db.query(func.count(EmailSend.id))
        .filter(EmailSend.campaign_id == campaign.id, EmailSend.status == SendStatus.PENDING)
        .scalar()
    )
    if pending:
        return False

    campaign.status = CampaignStatus.COMPLETE
    campaign.completed_at = datetime.utcnow()
    db.commit()
    logger.info(f"✅ Campaign {campaign.id} complete: sent={campaign.sent_count}, failed={campaign.failed_count}")
    return True


def campaign_stats(db: Session, campaign: EmailCampaign) -> Dict[str, Any]:
    rows = (
        db.query(EmailSend.status, func.count(EmailSend.id))
        .filter(EmailSend.campaign_id == campaign.id)
        .group_by(EmailSend.status)
        .all()
    )
    by_status = {status.value: count for status, count in rows}
    total = sum(by_status.values())
    delivered = campaign.sent_count or 0

    return {
        "total": total,
        "byStatus": by_status,
        "sent": delivered,
        "failed": campaign.failed_count or 0,
        "opens": campaign.open_count or 0,
        "clicks": campaign.click_count or 0,
        "openRate": round(campaign.open_count / delivered * 100, 2) if delivered else 0,
        "clickRate": round(campaign.click_count / delivered * 100, 2) if delivered else 0,
    }


# ============================================
# Subscribers
# ============================================

def ensure_subscriber(db: Session, user: User) -> EmailSubscriber:
    """Subscriber row for a user's address, created subscribed when missing. Caller commits."""
    subscriber = db.query(EmailSubscriber).filter(EmailSubscriber.email == user.email).first()
    if subscriber is None:
        subscriber = EmailSubscriber(user_id=user.id, email=user.email, is_subscribed=True)
        db.add(subscriber)
    elif subscriber.user_id is None:
        subscriber.user_id = user.id
    return subscriber


def set_subscription(db: Session, subscriber: EmailSubscriber, is_subscribed: bool) -> EmailSubscriber:
    """Toggle opt-in; unsubscribing stamps unsubscribedAt, resubscribing clears it"""
    subscriber.is_subscribed = is_subscribed
    subscriber.unsubscribed_at = None if is_subscribed else datetime.utcnow()
    db.commit()
    db.refresh(subscriber)
    return subscriber


def unsubscribe_email(db: Session, email: str) -> EmailSubscriber:
    subscriber = (
        db.query(EmailSubscriber)
        .filter(func.lower(EmailSubscriber.email) == email.strip().lower())
        .first()
    )
    if not subscriber:
        raise EmailCampaignError("Email not found", status_code=404)

    logger.info(f"🚫 Unsubscribed: {subscriber.email}")
    return set_subscription(db, subscriber, False)


def import_users(db: Session) -> Dict[str, int]:
    """
    Create subscriber rows for every user; link existing rows to their user

    Returns:
        Counts of created, updated and skipped users
    """
    created = updated = skipped = 0

    by_email = {sub.email.lower(): sub for sub in db.query(EmailSubscriber).all()}

    for user in db.query(User).order_by(User.id).all():
        if not user.email or "@" not in user.email:
            skipped += 1
            continue

        existing = by_email.get(user.email.lower())
        if existing is None:
            subscriber = EmailSubscriber(user_id=user.id, email=user.email, is_subscribed=True)
            db.add(subscriber)
            by_email[user.email.lower()] = subscriber
            created += 1
        elif existing.user_id != user.id:
            existing.user_id = user.id
            updated += 1
        else:
            skipped += 1

    db.commit()
    logger.info(f"👥 Subscriber import: created={created}, updated={updated}, skipped={skipped}")
    return {"created": created, "updated": updated, "skipped": skipped}


# ============================================
# Tracking
# ============================================

def record_open(db: Session, send_id: int) -> Optional[EmailSend]:
    send = db.query(EmailSend).filter(EmailSend.id == send_id).first()
    if not send or send.opened_at is not None:
        return send

    send.opened_at = datetime.utcnow()
    if send.status == SendStatus.SENT:
        send.status = SendStatus.OPENED
    send.campaign.open_count = (send.campaign.open_count or 0) + 1
    db.commit()
    return send


def record_click(db: Session, send_id: int) -> Optional[EmailSend]:
    send = db.query(EmailSend).filter(EmailSend.id == send_id).first()
    if not send:
        return None

    if send.opened_at is None:
        record_open(db, send_id)

    if send.clicked_at is None:
        send.clicked_at = datetime.utcnow()
        if send.status in (SendStatus.SENT, SendStatus.OPENED):
            send.status = SendStatus.CLICKED
        send.campaign.click_count = (send.campaign.click_count or 0) + 1
        db.commit()
    return send
