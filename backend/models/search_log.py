"""
Search log - one row per non-empty catalog search
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from .base import Base


class SearchLog(Base):
    __tablename__ = "search_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(255), nullable=False, index=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=True)
    result_count = Column("resultCount", Integer, default=0, nullable=False)
    created_at = Column("createdAt", DateTime, default=func.now(), nullable=False, index=True)
