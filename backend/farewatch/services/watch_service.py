"""
Watch management: create, update, delete and import-from-reservation.

Validation lives here (interval floor, leg count, provider, code shape); the engine
trusts stored watches. Every change that affects timing arms or disarms the watch's
timer on the scheduler.
"""
import logging
import re
import uuid
from typing import Any

from farewatch.config import settings
from farewatch.core.constants import PROVIDER_VIETJET, RESERVATION_CODE_LENGTH
from farewatch.core.errors import ReservationError, ReservationErrorKind
from farewatch.scheduler.watch_scheduler import WatchScheduler
from farewatch.services.providers import registry
from farewatch.services.types import Leg, Watch
from farewatch.services.watch_store import WatchStore

logger = logging.getLogger(__name__)

FARE_CLASSES = ("economy", "business")
_CODE_RE = re.compile(rf"^[A-Z0-9]{{{RESERVATION_CODE_LENGTH}}}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")

# Fields PATCH /watches/{id} may change.
USER_EDITABLE_FIELDS = ("check_interval_seconds", "is_active", "auto_hold_enabled", "passengers")


def validate_interval(seconds: int) -> int:
    minimum = settings.min_check_interval_seconds
    if seconds < minimum:
        raise ValueError(f"check_interval_seconds must be at least {minimum}")
    return seconds


def validate_legs(legs: list[Leg], is_round_trip: bool) -> list[Leg]:
    if not 1 <= len(legs) <= 2:
        raise ValueError("A watch has one or two legs")
    if is_round_trip and len(legs) != 2:
        raise ValueError("A round trip needs an outbound and a return leg")
    if not is_round_trip and len(legs) != 1:
        raise ValueError("A one-way watch has exactly one leg")
    for leg in legs:
        if not leg.origin or not leg.destination:
            raise ValueError("Each leg needs origin and destination")
        if not _DATE_RE.match(leg.date):
            raise ValueError(f"Invalid date {leg.date!r}. Use YYYY-MM-DD.")
        if leg.time is not None and not _TIME_RE.match(leg.time):
            raise ValueError(f"Invalid time {leg.time!r}. Use HH:MM.")
        if leg.fare_class not in FARE_CLASSES:
            raise ValueError(f"fare_class must be one of {FARE_CLASSES}")
    return legs


def normalize_reservation_code(code: str) -> str:
    code = (code or "").strip().upper()
    if not _CODE_RE.match(code):
        raise ValueError(f"Reservation code must be {RESERVATION_CODE_LENGTH} letters or digits")
    return code


class WatchService:
    def __init__(self, store: WatchStore, scheduler: WatchScheduler, *, providers: Any = registry) -> None:
        self._store = store
        self._scheduler = scheduler
        self._providers = providers

    async def create_watch(
        self,
        *,
        owner_id: str,
        provider: str,
        legs: list[Leg],
        is_round_trip: bool = False,
        check_interval_seconds: int | None = None,
        auto_hold_enabled: bool = False,
        passengers: list[dict[str, Any]] | None = None,
        prior_reservation_code: str | None = None,
    ) -> Watch:
        """Store a new watch (never checked) and arm it so the first check runs right away."""
        provider = (provider or "").strip().upper()
        if provider not in self._providers.list_providers():
            raise ValueError(f"Unknown provider {provider!r}")
        watch = Watch(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            provider=provider,
            legs=validate_legs(legs, is_round_trip),
            check_interval_seconds=validate_interval(
                check_interval_seconds or settings.default_check_interval_seconds
            ),
            is_round_trip=is_round_trip,
            auto_hold_enabled=auto_hold_enabled,
            passengers=list(passengers or []),
            prior_reservation_code=(
                normalize_reservation_code(prior_reservation_code) if prior_reservation_code else None
            ),
        )
        created = await self._store.create_watch(watch)
        self._scheduler.arm(created)
        logger.info("Created watch %s (%s %s) every %ss", created.id, provider, created.route(), created.check_interval_seconds)
        return created

    async def update_watch(self, watch_id: str, **fields: Any) -> Watch:
        unknown = set(fields) - set(USER_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        if fields.get("check_interval_seconds") is not None:
            validate_interval(fields["check_interval_seconds"])
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            return await self._store.get_watch(watch_id)
        updated = await self._store.update_watch(watch_id, **changes)
        # A cycle in flight re-reads the watch before re-arming.
        if not self._scheduler.in_flight(watch_id):
            self._scheduler.arm(updated)
        elif not updated.is_active:
            self._scheduler.disarm(watch_id)
        return updated

    async def delete_watch(self, watch_id: str) -> None:
        self._scheduler.disarm(watch_id)
        await self._store.delete_watch(watch_id)
        logger.info("Deleted watch %s", watch_id)

    async def import_from_reservation(
        self,
        *,
        owner_id: str,
        code: str,
        exact_time: bool = False,
        auto_hold_enabled: bool = True,
        check_interval_seconds: int | None = None,
    ) -> Watch:
        """
        Create a watch from an existing VietJet reservation: same itinerary and passengers,
        checked at the minimum interval by default. The code is kept as prior_reservation_code
        so a cheaper hold supersedes it, and a paid one retires the watch instead.
        """
        code = normalize_reservation_code(code)
        provider = self._providers.get_reservation_provider(PROVIDER_VIETJET)
        if provider is None:
            raise ReservationError(ReservationErrorKind.UNREACHABLE, "Reservation lookup is not available")
        details = await provider.get_reservation(code)
        if details.finalized:
            raise ReservationError(ReservationErrorKind.ALREADY_ISSUED, f"Reservation {code} is already issued")
        legs = [leg if exact_time else Leg(leg.origin, leg.destination, leg.date, None, leg.fare_class) for leg in details.legs]
        return await self.create_watch(
            owner_id=owner_id,
            provider=PROVIDER_VIETJET,
            legs=legs,
            is_round_trip=details.is_round_trip,
            check_interval_seconds=check_interval_seconds or settings.min_check_interval_seconds,
            auto_hold_enabled=auto_hold_enabled and bool(details.passengers),
            passengers=details.passengers,
            prior_reservation_code=code,
        )
