"""Normalized engine types. Same shape regardless of provider; no provider field names past the adapters."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

# Passenger manifest entries are opaque dicts. The engine only reads:
#   - type: "adult" | "child"
#   - infant: dict | None   (an infant travels on an adult's lap)
PASSENGER_ADULT = "adult"
PASSENGER_CHILD = "child"


class Trigger(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class NotificationKind(str, Enum):
    PRICE_DECREASED = "price_decreased"
    PRICE_INCREASED = "price_increased"
    PRICE_UNCHANGED = "price_unchanged"
    CHECK_FAILED = "check_failed"
    HOLD_SUCCEEDED = "hold_succeeded"
    HOLD_FAILED = "hold_failed"
    HOLD_SKIPPED_ALREADY_ISSUED = "hold_skipped_already_issued"


@dataclass(frozen=True)
class Leg:
    origin: str
    destination: str
    date: str  # YYYY-MM-DD
    time: str | None = None  # exact departure HH:MM; None = any time (cheapest)
    fare_class: str = "economy"  # economy | business

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "date": self.date,
            "time": self.time,
            "fare_class": self.fare_class,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Leg":
        return cls(
            origin=(data.get("origin") or "").strip().upper(),
            destination=(data.get("destination") or "").strip().upper(),
            date=(data.get("date") or "").strip(),
            time=(data.get("time") or "").strip() or None,
            fare_class=(data.get("fare_class") or "economy").strip().lower(),
        )


@dataclass
class Watch:
    id: str
    owner_id: str
    provider: str
    legs: list[Leg]
    check_interval_seconds: int
    is_round_trip: bool = False
    is_active: bool = True
    auto_hold_enabled: bool = False
    last_checked_at: datetime | None = None
    current_price: int | None = None
    booking_refs: list[str | None] | None = None
    prior_reservation_code: str | None = None
    passengers: list[dict[str, Any]] = field(default_factory=list)

    def passenger_counts(self) -> tuple[int, int, int]:
        """(adults, children, infants). Infants ride with adults, so they are counted from adult entries."""
        adults = children = infants = 0
        for p in self.passengers:
            if not isinstance(p, dict):
                continue
            if p.get("type") == PASSENGER_CHILD:
                children += 1
            else:
                adults += 1
                if isinstance(p.get("infant"), dict) and p["infant"]:
                    infants += 1
        return adults, children, infants

    def route(self) -> str:
        if not self.legs:
            return ""
        first = self.legs[0]
        arrow = "⇄" if self.is_round_trip else "→"
        return f"{first.origin} {arrow} {first.destination}"

    def with_updates(self, **fields: Any) -> "Watch":
        return replace(self, **fields)


@dataclass(frozen=True)
class PriceQuote:
    """One normalized price-check result for one cycle."""

    provider: str
    price: int
    matched: bool
    booking_refs: tuple[str | None, ...] = ()  # one per leg; None when the provider returned none

    def has_usable_refs(self, leg_count: int) -> bool:
        return self.matched and len(self.booking_refs) >= leg_count and all(self.booking_refs[:leg_count])


@dataclass(frozen=True)
class PriceSample:
    watch_id: str
    observed_at: datetime
    price: int
    persisted: bool


@dataclass(frozen=True)
class ReservationRequest:
    provider: str
    passengers: list[dict[str, Any]]
    booking_refs: tuple[str, ...]
    is_round_trip: bool
    origin: str


@dataclass(frozen=True)
class ReservationConfirmation:
    code: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class ReservationDetails:
    """An existing reservation as returned by the status lookup; used for import and supersede checks."""

    code: str
    finalized: bool
    legs: list[Leg] = field(default_factory=list)
    is_round_trip: bool = False
    passengers: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ReservationRecord:
    code: str
    owner_id: str
    provider: str
    source_watch_id: str | None
    itinerary: dict[str, Any]
    passengers: list[dict[str, Any]]
    price: int | None = None
    expires_at: datetime | None = None
    status: str = "holding"
    superseded_by: str | None = None
    created_at: datetime | None = None


class HoldOutcome(str, Enum):
    HELD = "held"
    FAILED = "failed"
    SKIPPED_ALREADY_ISSUED = "skipped_already_issued"


@dataclass(frozen=True)
class ReservationAttempt:
    """Ephemeral result of one auto-hold attempt. Never persisted as its own entity."""

    provider: str
    booking_refs: tuple[str | None, ...]
    outcome: HoldOutcome
    code: str | None = None
    reason: str | None = None

    @property
    def retired(self) -> bool:
        """True when the source watch was deleted (held or superseded)."""
        return self.outcome in (HoldOutcome.HELD, HoldOutcome.SKIPPED_ALREADY_ISSUED)
