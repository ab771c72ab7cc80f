"""Reservations (holds) created by auto-hold. Status holding | superseded."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from farewatch.core.constants import RESERVATION_STATUS_HOLDING
from farewatch.db.base import Base, JSONType


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(16), nullable=False, unique=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    provider = Column(String(8), nullable=False)
    source_watch_id = Column(String(36), nullable=True, index=True)
    itinerary = Column(JSONType, nullable=False)  # snapshot of legs + round trip at hold time
    passengers = Column(JSONType, nullable=False)
    price = Column(Integer, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False, default=RESERVATION_STATUS_HOLDING)
    superseded_by = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
