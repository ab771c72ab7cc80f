"""
User notifications API: price changes and hold outcomes written by the notification emitter.

Recipient (watch owner) identified by X-Recipient-Id header or ?recipient_id= (default 'default').
Supports: list (with unread filter), mark one read, mark all read.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from farewatch.core.constants import LIST_LIMIT
from farewatch.db.session import get_db
from farewatch.models.user_notification import UserNotification
from farewatch.services.notify_service import describe
from farewatch.services.types import NotificationKind

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT_ID = "default"


def _recipient_id(
    x_recipient_id: str | None = Header(None, alias="X-Recipient-Id"),
    recipient_id: str | None = Query(None),
) -> str:
    return (x_recipient_id or recipient_id or DEFAULT_RECIPIENT_ID).strip() or DEFAULT_RECIPIENT_ID


def _text(row: UserNotification) -> str | None:
    try:
        return describe(NotificationKind(row.type), row.payload or {})
    except ValueError:
        return None


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
    limit: int = Query(80, ge=1, le=LIST_LIMIT),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """List notifications for the recipient, newest first. unread_only=true for badge counts."""
    q = db.query(UserNotification).filter(UserNotification.recipient_id == recipient_id)
    if unread_only:
        q = q.filter(UserNotification.read_at.is_(None))
    rows = q.order_by(UserNotification.created_at.desc(), UserNotification.id.desc()).limit(limit).all()
    unread_count = (
        db.query(UserNotification)
        .filter(UserNotification.recipient_id == recipient_id, UserNotification.read_at.is_(None))
        .count()
    )
    return {
        "notifications": [
            {
                "id": r.id,
                "type": r.type,
                "watch_id": r.watch_id,
                "text": _text(r),
                "read": r.read_at is not None,
                "read_at": r.read_at.isoformat() if r.read_at else None,
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "metadata": r.payload or {},
            }
            for r in rows
        ],
        "unread_count": unread_count,
    }


@router.post("/notifications/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
) -> dict[str, Any]:
    """Mark all notifications for the recipient as read ('Clear all' in UI)."""
    now = datetime.now(timezone.utc)
    updated = (
        db.query(UserNotification)
        .filter(UserNotification.recipient_id == recipient_id, UserNotification.read_at.is_(None))
        .update({UserNotification.read_at: now}, synchronize_session=False)
    )
    db.commit()
    return {"ok": True, "recipient_id": recipient_id, "marked_count": updated}


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
) -> dict[str, Any]:
    row = (
        db.query(UserNotification)
        .filter(UserNotification.id == notification_id, UserNotification.recipient_id == recipient_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Notification not found")
    if row.read_at is None:
        row.read_at = datetime.now(timezone.utc)
        db.commit()
    return {"ok": True, "id": notification_id, "read_at": row.read_at.isoformat()}
