"""User notification: persisted read state and metadata.

recipient_id: watch owner id.
type: notification kind ('price_decreased', 'hold_succeeded', ...).
read_at: NULL = unread; set when user marks as read.
metadata: type-specific payload (price, route, reservation code, reason, ...).
"""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from farewatch.db.base import Base, JSONType


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    watch_id = Column(String(36), nullable=True, index=True)
    type = Column(String(32), nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    payload = Column("metadata", JSONType, nullable=False, default=dict)  # column name 'metadata' in DB
