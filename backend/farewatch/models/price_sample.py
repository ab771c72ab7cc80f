"""Append-only price observations per watch. Audit only; the scheduler never reads them back."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String

from farewatch.db.base import Base


class PriceSample(Base):
    __tablename__ = "price_samples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    watch_id = Column(String(36), nullable=False, index=True)  # no FK: samples outlive deleted watches
    observed_at = Column(DateTime(timezone=True), nullable=False)
    price = Column(Integer, nullable=False)
    persisted = Column(Boolean, nullable=False)  # written to watches.current_price
