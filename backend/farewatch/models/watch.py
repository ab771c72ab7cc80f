"""A monitored itinerary: re-priced every check_interval_seconds, optionally auto-held on a drop."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from farewatch.db.base import Base, JSONType


class Watch(Base):
    __tablename__ = "watches"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    provider = Column(String(8), nullable=False)  # VJ | VNA
    legs = Column(JSONType, nullable=False)  # [{origin, destination, date, time, fare_class}]
    is_round_trip = Column(Boolean, nullable=False, default=False)
    check_interval_seconds = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    auto_hold_enabled = Column(Boolean, nullable=False, default=False)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    current_price = Column(Integer, nullable=True)
    booking_refs = Column(JSONType, nullable=True)  # one bookable reference per leg
    prior_reservation_code = Column(String(6), nullable=True)  # set when imported from a reservation
    passengers = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
