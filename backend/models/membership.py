"""
Membership tiers - billing cycle and periodic download quota
"""
from sqlalchemy import Column, Integer, String, Boolean, JSON, Enum as SQLEnum
import enum

from .base import Base


class BillingCycle(str, enum.Enum):
    """Billing cycle of a membership tier"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


# Months covered by one billing period
BILLING_CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.ANNUAL: 12,
}


class Membership(Base):
    """Subscription tier"""
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)  # cents
    billing_cycle = Column("billingCycle", SQLEnum(BillingCycle), default=BillingCycle.MONTHLY, nullable=False)
    download_limit = Column("downloadLimit", Integer, nullable=False)
    features = Column(JSON, default=list, nullable=False)
    is_popular = Column("isPopular", Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Membership(id={self.id}, name={self.name}, cycle={self.billing_cycle})>"

    @property
    def period_months(self) -> int:
        return BILLING_CYCLE_MONTHS[self.billing_cycle]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "billingCycle": self.billing_cycle.value,
            "downloadLimit": self.download_limit,
            "features": self.features or [],
            "isPopular": self.is_popular,
        }
