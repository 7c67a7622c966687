"""
Membership subscription and expiry
"""
import logging
from datetime import datetime
from typing import Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from models.user import User
from models.membership import Membership
from services.download_service import reset_quota

logger = logging.getLogger(__name__)


def subscribe(db: Session, user: User, membership: Membership, now: Optional[datetime] = None) -> User:
    """
    Put a user on a membership tier for one billing period starting now
    and reset the quota to the tier's download limit
    """
    now = now or datetime.utcnow()

    user.membership_id = membership.id
    user.membership_start_date = now
    user.membership_end_date = now + relativedelta(months=membership.period_months)
    reset_quota(user, membership.download_limit, now)

    db.commit()
    db.refresh(user)

    logger.info(f"💳 User {user.id} subscribed to {membership.name} until {user.membership_end_date.isoformat()}")
    return user


def expire_lapsed_memberships(db: Session, now: Optional[datetime] = None) -> int:
    """Clear memberships whose end date has passed. Returns the number of users updated."""
    now = now or datetime.utcnow()

    lapsed = (
        db.query(User)
        .filter(User.membership_id.isnot(None))
        .filter(User.membership_end_date <= now)
        .all()
    )

    for user in lapsed:
        user.membership_id = None
        user.downloads_remaining = 0

    db.commit()

    if lapsed:
        logger.info(f"⌛ Expired {len(lapsed)} lapsed memberships")
    return len(lapsed)
