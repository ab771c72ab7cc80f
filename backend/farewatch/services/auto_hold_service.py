"""
Auto-hold a watched fare when its price drops.

Runs inside the scheduler's per-watch guard, so one watch never has two holds in flight.
A prior reservation that is already paid retires the watch without booking again; a
successful hold is recorded, supersedes the prior reservation and retires the watch.
Failures leave the watch as it was so the next cycle re-evaluates it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from farewatch.core.errors import ReservationError, ReservationErrorKind, StorageError, StorageErrorKind
from farewatch.services.notify_service import Notifier, watch_payload
from farewatch.services.providers import registry
from farewatch.services.types import (
    HoldOutcome,
    NotificationKind,
    PriceQuote,
    ReservationAttempt,
    ReservationRecord,
    ReservationRequest,
    Watch,
)
from farewatch.services.watch_store import WatchStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_reservation_request(watch: Watch, quote: PriceQuote) -> ReservationRequest:
    refs = tuple(ref for ref in quote.booking_refs[: len(watch.legs)] if ref)
    return ReservationRequest(
        provider=watch.provider,
        passengers=list(watch.passengers),
        booking_refs=refs,
        is_round_trip=watch.is_round_trip,
        origin=watch.legs[0].origin,
    )


def itinerary_snapshot(watch: Watch, quote: PriceQuote) -> dict[str, Any]:
    return {
        "provider": watch.provider,
        "is_round_trip": watch.is_round_trip,
        "legs": [leg.to_dict() for leg in watch.legs],
        "booking_refs": list(quote.booking_refs),
        "price": quote.price,
    }


class AutoHoldOrchestrator:
    def __init__(
        self,
        store: WatchStore,
        notifier: Notifier,
        *,
        providers: Any = registry,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._providers = providers
        self._clock = clock

    async def hold(self, watch: Watch, quote: PriceQuote) -> ReservationAttempt:
        """Attempt one hold for a qualifying drop. Emits exactly one hold_* notification."""
        provider = self._providers.get_reservation_provider(watch.provider)
        if provider is None:
            return await self._failed(watch, quote, f"Provider {watch.provider} does not support holds")

        prior = watch.prior_reservation_code
        if prior:
            try:
                finalized = await provider.get_reservation_status(prior)
            except ReservationError as e:
                if e.kind is ReservationErrorKind.ALREADY_ISSUED:
                    return await self._skip_already_issued(watch, quote, prior)
                if e.kind is not ReservationErrorKind.REJECTED:
                    logger.warning("Status lookup for %s failed (watch %s): %s", prior, watch.id, e)
                    return await self._failed(watch, quote, f"Could not verify reservation {prior}: {e.message}")
                # Expired, cancelled or unknown: nothing was paid, so hold again.
                logger.info("Prior reservation %s not found for watch %s: %s", prior, watch.id, e)
                finalized = False
            if finalized:
                return await self._skip_already_issued(watch, quote, prior)

        try:
            confirmation = await provider.create_reservation(build_reservation_request(watch, quote))
        except ReservationError as e:
            if e.kind is ReservationErrorKind.ALREADY_ISSUED and prior:
                return await self._skip_already_issued(watch, quote, prior)
            logger.warning("Hold rejected for watch %s (%s): %s", watch.id, e.kind.value, e)
            return await self._failed(watch, quote, e.message or e.kind.value)

        record = ReservationRecord(
            code=confirmation.code,
            owner_id=watch.owner_id,
            provider=watch.provider,
            source_watch_id=watch.id,
            itinerary=itinerary_snapshot(watch, quote),
            passengers=list(watch.passengers),
            price=quote.price,
            expires_at=confirmation.expires_at,
            created_at=self._clock(),
        )
        try:
            await self._store.insert_reservation(record)
        except StorageError as e:
            logger.warning("Held %s for watch %s but could not record it: %s", confirmation.code, watch.id, e)
            return await self._failed(
                watch, quote, f"Held {confirmation.code} but could not save it: {e.message}", code=confirmation.code
            )

        if prior:
            await self._supersede(prior, confirmation.code)

        try:
            await self._store.delete_watch(watch.id)
        except StorageError as e:
            if e.kind is not StorageErrorKind.NOT_FOUND:
                logger.warning("Held %s but could not retire watch %s: %s", confirmation.code, watch.id, e)
                return await self._failed(
                    watch, quote, f"Held {confirmation.code} but the watch is still active", code=confirmation.code
                )

        logger.info("Held %s for watch %s at %s", confirmation.code, watch.id, quote.price)
        await self._notifier.notify(
            NotificationKind.HOLD_SUCCEEDED,
            watch.id,
            watch_payload(
                watch,
                price=quote.price,
                previous_price=watch.current_price,
                code=confirmation.code,
                expires_at=confirmation.expires_at.isoformat() if confirmation.expires_at else None,
                superseded=prior,
            ),
        )
        return ReservationAttempt(watch.provider, quote.booking_refs, HoldOutcome.HELD, code=confirmation.code)

    async def _supersede(self, prior: str, code: str) -> None:
        try:
            await self._store.supersede_reservation(prior, code)
        except StorageError as e:
            # Imported codes were never held here, so there is usually no record to mark.
            if e.kind is not StorageErrorKind.NOT_FOUND:
                logger.warning("Could not mark %s superseded by %s: %s", prior, code, e)

    async def _skip_already_issued(self, watch: Watch, quote: PriceQuote, prior: str) -> ReservationAttempt:
        try:
            await self._store.delete_watch(watch.id)
        except StorageError as e:
            if e.kind is not StorageErrorKind.NOT_FOUND:
                logger.warning("Reservation %s is issued but watch %s could not be removed: %s", prior, watch.id, e)
        logger.info("Reservation %s already issued; retired watch %s without holding", prior, watch.id)
        await self._notifier.notify(
            NotificationKind.HOLD_SKIPPED_ALREADY_ISSUED,
            watch.id,
            watch_payload(watch, price=quote.price, code=prior),
        )
        return ReservationAttempt(
            watch.provider, quote.booking_refs, HoldOutcome.SKIPPED_ALREADY_ISSUED, code=prior
        )

    async def _failed(
        self, watch: Watch, quote: PriceQuote, reason: str, *, code: str | None = None
    ) -> ReservationAttempt:
        await self._notifier.notify(
            NotificationKind.HOLD_FAILED,
            watch.id,
            watch_payload(watch, price=quote.price, previous_price=watch.current_price, reason=reason, code=code),
        )
        return ReservationAttempt(watch.provider, quote.booking_refs, HoldOutcome.FAILED, code=code, reason=reason)
