"""In-memory fakes for the engine: store, notifier, fare and reservation providers, clock."""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

# Settings are read at import time; keep tests off the real database and .env values.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFY_EMAIL"] = ""

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from farewatch.core.errors import ReservationError, ReservationErrorKind, StorageError, StorageErrorKind
from farewatch.db.base import Base
import farewatch.models  # noqa: F401  (register tables on Base.metadata)
from farewatch.scheduler.watch_scheduler import WatchScheduler
from farewatch.services.auto_hold_service import AutoHoldOrchestrator
from farewatch.services.types import (
    PASSENGER_ADULT,
    Leg,
    PriceQuote,
    PriceSample,
    ReservationConfirmation,
    ReservationDetails,
    ReservationRecord,
    ReservationRequest,
    Watch,
)

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)

ADULT = {
    "last_name": "Nguyễn",
    "first_name": "Văn Đức",
    "passport": "B1234567",
    "gender": "male",
    "nationality": "VN",
    "type": PASSENGER_ADULT,
    "infant": None,
}


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeStore:
    """WatchStore in memory. Set fail_* to a StorageErrorKind to make that call raise."""

    def __init__(self) -> None:
        self.watches: dict[str, Watch] = {}
        self.samples: list[PriceSample] = []
        self.reservations: dict[str, ReservationRecord] = {}
        self.fail_delete: StorageErrorKind | None = None
        self.fail_insert: StorageErrorKind | None = None
        self.list_limits: list[int | None] = []

    def _get(self, watch_id: str) -> Watch:
        if watch_id not in self.watches:
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Watch {watch_id} not found")
        return self.watches[watch_id]

    async def list_active_watches(self) -> list[Watch]:
        return [w for w in self.watches.values() if w.is_active]

    async def list_watches(self, owner_id: str | None = None, limit: int | None = None) -> list[Watch]:
        self.list_limits.append(limit)
        rows = [w for w in self.watches.values() if owner_id is None or w.owner_id == owner_id]
        return rows if limit is None else rows[:limit]

    async def get_watch(self, watch_id: str) -> Watch:
        return self._get(watch_id).with_updates()

    async def create_watch(self, watch: Watch) -> Watch:
        self.watches[watch.id] = watch.with_updates()
        return watch.with_updates()

    async def update_watch(self, watch_id: str, **fields: Any) -> Watch:
        updated = self._get(watch_id).with_updates(**fields)
        self.watches[watch_id] = updated
        return updated.with_updates()

    async def delete_watch(self, watch_id: str) -> None:
        if self.fail_delete is not None:
            raise StorageError(self.fail_delete, "delete failed")
        self._get(watch_id)
        del self.watches[watch_id]

    async def append_price_sample(self, sample: PriceSample) -> None:
        self.samples.append(sample)

    async def insert_reservation(self, record: ReservationRecord) -> None:
        if self.fail_insert is not None:
            raise StorageError(self.fail_insert, "insert failed")
        if record.code in self.reservations:
            raise StorageError(StorageErrorKind.CONFLICT, f"Reservation {record.code} already exists")
        self.reservations[record.code] = record

    async def supersede_reservation(self, code: str, superseded_by: str) -> None:
        if code not in self.reservations:
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Reservation {code} not found")
        self.reservations[code].status = "superseded"
        self.reservations[code].superseded_by = superseded_by

    async def list_reservations(self, owner_id: str | None = None, limit: int = 100) -> list[ReservationRecord]:
        rows = [r for r in self.reservations.values() if owner_id is None or r.owner_id == owner_id]
        return list(reversed(rows))[:limit]


class RecordingNotifier:
    """Records every notification. Optional gate blocks inside notify after recording."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, str, dict[str, Any]]] = []
        self.gate: asyncio.Event | None = None

    async def notify(self, kind, watch_id: str, payload: dict[str, Any]) -> None:
        self.events.append((kind, watch_id, payload))
        if self.gate is not None:
            await self.gate.wait()

    def kinds(self) -> list[str]:
        return [k.value for k, _, _ in self.events]


class FakeFareProvider:
    """Returns queued quotes (or raises queued exceptions). Optional gate blocks inside check_price."""

    def __init__(self, provider_id: str = "VJ", *, authoritative: bool = True) -> None:
        self.provider_id = provider_id
        self.authoritative_price = authoritative
        self.results: list[PriceQuote | Exception] = []
        self.gate: asyncio.Event | None = None
        self.on_check: Callable[[Watch], Any] | None = None
        self.calls = 0
        self.active = 0
        self.max_active = 0

    def quote(self, price: int, refs: tuple[str | None, ...] = ("KEY-OUT",), matched: bool = True) -> "FakeFareProvider":
        self.results.append(PriceQuote(self.provider_id, price, matched, refs))
        return self

    def fail(self, exc: Exception) -> "FakeFareProvider":
        self.results.append(exc)
        return self

    async def check_price(self, watch: Watch) -> PriceQuote:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.on_check is not None:
                await self.on_check(watch)
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.active -= 1


class FakeReservationProvider:
    def __init__(self) -> None:
        self.finalized: dict[str, bool] = {}
        self.details: dict[str, ReservationDetails] = {}
        self.create_calls: list[ReservationRequest] = []
        self.next_code = "NEW123"
        self.expires_at: datetime | None = T0 + timedelta(hours=24)
        self.create_error: ReservationError | None = None
        self.status_error: ReservationError | None = None

    async def create_reservation(self, request: ReservationRequest) -> ReservationConfirmation:
        self.create_calls.append(request)
        if self.create_error is not None:
            raise self.create_error
        return ReservationConfirmation(code=self.next_code, expires_at=self.expires_at)

    async def get_reservation(self, code: str) -> ReservationDetails:
        if code not in self.details:
            raise ReservationError(ReservationErrorKind.REJECTED, f"Reservation {code} not found")
        return self.details[code]

    async def get_reservation_status(self, code: str) -> bool:
        """Like the agency lookup: unknown (expired, cancelled) codes raise REJECTED."""
        if self.status_error is not None:
            raise self.status_error
        if code in self.finalized:
            return self.finalized[code]
        return (await self.get_reservation(code)).finalized


class FakeProviders:
    """Stands in for the provider registry module."""

    def __init__(self, fare: dict[str, Any], reservation: dict[str, Any] | None = None) -> None:
        self._fare = fare
        self._reservation = reservation or {}

    def get_provider(self, name: str) -> Any:
        if name not in self._fare:
            raise KeyError(f"Unknown provider: {name}")
        return self._fare[name]

    def get_reservation_provider(self, name: str) -> Any:
        return self._reservation.get(name)

    def list_providers(self) -> list[str]:
        return list(self._fare)


def make_watch(**overrides: Any) -> Watch:
    fields: dict[str, Any] = {
        "id": "w-1",
        "owner_id": "owner-1",
        "provider": "VJ",
        "legs": [Leg("SGN", "HAN", "2026-04-10")],
        "check_interval_seconds": 300,
        "auto_hold_enabled": True,
        "passengers": [dict(ADULT)],
    }
    fields.update(overrides)
    return Watch(**fields)


class Engine:
    """Scheduler wired to fakes on an unstarted APScheduler, so jobs can be inspected."""

    def __init__(self) -> None:
        self.clock = FakeClock()
        self.store = FakeStore()
        self.notifier = RecordingNotifier()
        self.vj = FakeFareProvider("VJ", authoritative=True)
        self.vna = FakeFareProvider("VNA", authoritative=False)
        self.holds = FakeReservationProvider()
        self.providers = FakeProviders({"VJ": self.vj, "VNA": self.vna}, {"VJ": self.holds})
        self.orchestrator = AutoHoldOrchestrator(
            self.store, self.notifier, providers=self.providers, clock=self.clock
        )
        self.scheduler = WatchScheduler(
            self.store,
            self.notifier,
            self.orchestrator,
            providers=self.providers,
            scheduler=AsyncIOScheduler(timezone=timezone.utc),
            clock=self.clock,
            sync_interval_seconds=60,
        )

    async def add(self, **overrides: Any) -> Watch:
        return await self.store.create_watch(make_watch(**overrides))


@pytest.fixture
def engine() -> Engine:
    return Engine()


@pytest.fixture
def session_factory():
    """SQLite in memory, one connection shared across threads (sessions run in asyncio.to_thread)."""
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(db_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    Base.metadata.drop_all(db_engine)
    db_engine.dispose()
