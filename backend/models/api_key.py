"""
Third-party API access - keys and per-request usage log
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime

from .base import Base


class ApiKey(Base):
    """API key owned by a user"""
    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    key = Column(String(64), unique=True, nullable=False, index=True)
    scopes = Column(JSON, default=list, nullable=False)
    last_used = Column("lastUsed", DateTime, nullable=True)
    expires_at = Column("expiresAt", DateTime, nullable=True)
    is_active = Column("isActive", Boolean, default=True, nullable=False)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False)

    user = relationship("User")

    def __repr__(self):
        return f"<ApiKey(id={self.id}, name={self.name}, active={self.is_active})>"

    def is_usable(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.is_active and (self.expires_at is None or self.expires_at > now)

    def to_dict(self, reveal_key=False):
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "key": self.key if reveal_key else f"{self.key[:8]}...{self.key[-4:]}",
            "scopes": self.scopes or [],
            "lastUsed": self.last_used.isoformat() if self.last_used else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class ApiUsage(Base):
    """One request made with an API key"""
    __tablename__ = "api_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key_id = Column("apiKeyId", Integer, ForeignKey("api_keys.id"), nullable=False, index=True)
    endpoint = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    status_code = Column("statusCode", Integer, nullable=False)
    response_time = Column("responseTime", Integer, nullable=False)  # milliseconds
    ip_address = Column("ipAddress", String(64), nullable=True)
    user_agent = Column("userAgent", String(512), nullable=True)
    timestamp = Column(DateTime, default=func.now(), nullable=False, index=True)
