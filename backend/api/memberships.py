"""
Membership tier endpoints
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.security import get_current_user
from models.user import User
from models.membership import Membership
from services.membership_service import subscribe

logger = logging.getLogger(__name__)

router = APIRouter()


def get_membership_or_404(db: Session, membership_id: int) -> Membership:
    membership = db.query(Membership).filter(Membership.id == membership_id).first()
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Membership not found"
        )
    return membership


@router.get("")
async def list_memberships(db: Session = Depends(get_db)):
    """Tiers ordered by price"""
    return [m.to_dict() for m in db.query(Membership).order_by(Membership.price, Membership.id).all()]


@router.get("/{membership_id}")
async def get_membership(membership_id: int, db: Session = Depends(get_db)):
    return get_membership_or_404(db, membership_id).to_dict()


@router.post("/{membership_id}/subscribe")
async def subscribe_to_membership(
    membership_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Start a billing period on this tier now
    Payment is handled outside this service
    """
    membership = get_membership_or_404(db, membership_id)
    user = subscribe(db, current_user, membership)
    return {
        "message": f"Subscribed to {membership.name}",
        "user": user.to_dict(include_membership=True),
    }
