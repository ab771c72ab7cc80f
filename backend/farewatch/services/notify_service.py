"""
Notification emitter: the one place the scheduler and auto-hold report cycle outcomes.

Every notify() persists a UserNotification for the watch owner. Actionable kinds
(price drops and hold outcomes) are also pushed to the owner's devices; a successful
hold is emailed to NOTIFY_EMAIL when set. Delivery never raises into the engine.
"""
import asyncio
import logging
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farewatch.config import settings
from farewatch.core.constants import PUSH_TITLES
from farewatch.models.push_token import PushToken
from farewatch.models.user_notification import UserNotification
from farewatch.services.email_notify import send_hold_email
from farewatch.services.push import send_watch_push
from farewatch.services.types import NotificationKind, Watch

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, kind: NotificationKind, watch_id: str, payload: dict[str, Any]) -> None: ...


def watch_payload(watch: Watch, **extra: Any) -> dict[str, Any]:
    """JSON-safe notification metadata for a watch. None-valued extras are dropped."""
    payload: dict[str, Any] = {
        "owner_id": watch.owner_id,
        "provider": watch.provider,
        "route": watch.route(),
        "dates": " / ".join(leg.date for leg in watch.legs),
    }
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


def _price(value: Any) -> str:
    return f"{value:,}" if isinstance(value, int) else "?"


def describe(kind: NotificationKind, payload: dict[str, Any]) -> str:
    """One-line human text for a notification (push body, in-app subtitle)."""
    route = payload.get("route") or "Your watch"
    if kind is NotificationKind.PRICE_DECREASED:
        return f"{route}: {_price(payload.get('previous_price'))} → {_price(payload.get('price'))}"
    if kind is NotificationKind.PRICE_INCREASED:
        return f"{route}: price went up to {_price(payload.get('price'))}"
    if kind is NotificationKind.PRICE_UNCHANGED:
        return f"{route}: still {_price(payload.get('price'))}"
    if kind is NotificationKind.CHECK_FAILED:
        return f"{route}: check failed ({payload.get('reason') or 'unknown error'})"
    if kind is NotificationKind.HOLD_SUCCEEDED:
        return f"{route}: held as {payload.get('code')} at {_price(payload.get('price'))}"
    if kind is NotificationKind.HOLD_FAILED:
        return f"{route}: could not hold ({payload.get('reason') or 'unknown error'})"
    if kind is NotificationKind.HOLD_SKIPPED_ALREADY_ISSUED:
        return f"{route}: reservation {payload.get('code')} is already issued; watch removed"
    return route


class NotificationEmitter:
    """Notifier backed by user_notifications + APNs + SMTP."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        push_sender: Callable[..., int] = send_watch_push,
        email_sender: Callable[[str, dict[str, Any]], bool] = send_hold_email,
        notify_email: str | None = None,
    ) -> None:
        if session_factory is None:
            from farewatch.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self._push_sender = push_sender
        self._email_sender = email_sender
        self._notify_email = notify_email if notify_email is not None else settings.notify_email

    async def notify(self, kind: NotificationKind, watch_id: str, payload: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._deliver, NotificationKind(kind), watch_id, dict(payload))
        except Exception:
            logger.exception("Notification %s for watch %s could not be delivered", kind, watch_id)

    def _deliver(self, kind: NotificationKind, watch_id: str, payload: dict[str, Any]) -> None:
        owner_id = str(payload.get("owner_id") or "default")
        tokens = self._persist(kind, watch_id, owner_id, payload)
        title = PUSH_TITLES.get(kind.value)
        if title and tokens:
            sent = self._push_sender(tokens, title, describe(kind, payload), watch_id=watch_id)
            logger.info("Push %s for watch %s: sent to %s/%s device(s)", kind.value, watch_id, sent, len(tokens))
        if kind is NotificationKind.HOLD_SUCCEEDED and self._notify_email:
            self._email_sender(self._notify_email, payload)

    def _persist(self, kind: NotificationKind, watch_id: str, owner_id: str, payload: dict[str, Any]) -> list[str]:
        """Write the in-app row; return the owner's push tokens ([] when the DB is unavailable)."""
        db = self._session_factory()
        try:
            db.add(UserNotification(recipient_id=owner_id, watch_id=watch_id, type=kind.value, payload=payload))
            db.commit()
            rows = db.query(PushToken.device_token).filter(PushToken.owner_id == owner_id).all()
            return [r[0] for r in rows]
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not persist %s notification for watch %s: %s", kind.value, watch_id, e)
            return []
        finally:
            db.close()
