"""
Admin: clear watch state. Timers are in-memory; restart the backend so the scheduler forgets them.
Tables: watches, price_samples (see farewatch.db.tables). Reservations and notifications are kept.
"""
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farewatch.db.tables import WATCH_TABLE_NAMES
from farewatch.models.price_sample import PriceSample
from farewatch.models.watch import Watch

logger = logging.getLogger(__name__)


def clear_watch_state(db: Session) -> dict[str, int]:
    """
    Delete every watch and its price history. Returns table -> deleted count (-1 when
    TRUNCATE was used and the count is unknown).
    """
    deleted: dict[str, int] = {}
    try:
        tables = ", ".join(WATCH_TABLE_NAMES)
        db.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        db.commit()
        for t in WATCH_TABLE_NAMES:
            deleted[t] = -1
        logger.info("clear_watch_state: done (TRUNCATE)")
    except SQLAlchemyError as e:
        # SQLite has no TRUNCATE
        db.rollback()
        logger.warning("clear_watch_state: TRUNCATE failed (%s), using DELETE", e)
        deleted["price_samples"] = db.query(PriceSample).delete()
        deleted["watches"] = db.query(Watch).delete()
        db.commit()
        logger.info(
            "clear_watch_state: done (DELETE) price_samples=%s watches=%s",
            deleted["price_samples"], deleted["watches"],
        )
    return deleted
