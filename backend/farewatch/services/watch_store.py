"""
Watch store gateway: watches, price history and reservation records.

WatchStore is the async contract the scheduler and auto-hold depend on. SqlWatchStore
implements it with short SQLAlchemy sessions run in worker threads, so a slow database
never blocks other watches' cycles on the event loop.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from farewatch.core.constants import RESERVATION_STATUS_SUPERSEDED
from farewatch.core.errors import StorageError, StorageErrorKind
from farewatch.models.price_sample import PriceSample as PriceSampleRow
from farewatch.models.reservation import Reservation as ReservationRow
from farewatch.models.watch import Watch as WatchRow
from farewatch.services.types import Leg, PriceSample, ReservationRecord, Watch

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields update_watch accepts. Identity and itinerary are not engine-mutable.
UPDATABLE_FIELDS = frozenset(
    {
        "check_interval_seconds",
        "is_active",
        "auto_hold_enabled",
        "last_checked_at",
        "current_price",
        "booking_refs",
        "prior_reservation_code",
        "passengers",
    }
)


class WatchStore(Protocol):
    async def list_active_watches(self) -> list[Watch]: ...

    async def list_watches(self, owner_id: str | None = None, limit: int | None = None) -> list[Watch]: ...

    async def get_watch(self, watch_id: str) -> Watch:
        """Raises StorageError NOT_FOUND."""
        ...

    async def create_watch(self, watch: Watch) -> Watch: ...

    async def update_watch(self, watch_id: str, **fields: Any) -> Watch:
        """Partial update. Raises StorageError NOT_FOUND."""
        ...

    async def delete_watch(self, watch_id: str) -> None:
        """Raises StorageError NOT_FOUND."""
        ...

    async def append_price_sample(self, sample: PriceSample) -> None: ...

    async def insert_reservation(self, record: ReservationRecord) -> None:
        """Raises StorageError CONFLICT when the code already exists."""
        ...

    async def supersede_reservation(self, code: str, superseded_by: str) -> None:
        """Raises StorageError NOT_FOUND when no reservation has this code."""
        ...

    async def list_reservations(self, owner_id: str | None = None, limit: int = 100) -> list[ReservationRecord]: ...


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def watch_from_row(row: WatchRow) -> Watch:
    return Watch(
        id=row.id,
        owner_id=row.owner_id,
        provider=row.provider,
        legs=[Leg.from_dict(leg) for leg in row.legs or []],
        check_interval_seconds=row.check_interval_seconds,
        is_round_trip=bool(row.is_round_trip),
        is_active=bool(row.is_active),
        auto_hold_enabled=bool(row.auto_hold_enabled),
        last_checked_at=_as_utc(row.last_checked_at),
        current_price=row.current_price,
        booking_refs=list(row.booking_refs) if row.booking_refs is not None else None,
        prior_reservation_code=row.prior_reservation_code,
        passengers=list(row.passengers or []),
    )


def reservation_from_row(row: ReservationRow) -> ReservationRecord:
    return ReservationRecord(
        code=row.code,
        owner_id=row.owner_id,
        provider=row.provider,
        source_watch_id=row.source_watch_id,
        itinerary=row.itinerary or {},
        passengers=list(row.passengers or []),
        price=row.price,
        expires_at=_as_utc(row.expires_at),
        status=row.status,
        superseded_by=row.superseded_by,
        created_at=_as_utc(row.created_at),
    )


class SqlWatchStore:
    """WatchStore over SQLAlchemy. session_factory defaults to farewatch.db.session.SessionLocal."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from farewatch.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, fn)

    def _run_sync(self, fn: Callable[[Session], T]) -> T:
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except StorageError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            raise StorageError(StorageErrorKind.CONFLICT, str(e.orig) if e.orig else str(e))
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Watch store error: %s", e)
            raise StorageError(StorageErrorKind.UNREACHABLE, str(e))
        finally:
            db.close()

    @staticmethod
    def _get_row(db: Session, watch_id: str) -> WatchRow:
        row = db.get(WatchRow, watch_id)
        if row is None:
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Watch {watch_id} not found")
        return row

    # --- Watches ---

    async def list_active_watches(self) -> list[Watch]:
        def op(db: Session) -> list[Watch]:
            rows = db.query(WatchRow).filter(WatchRow.is_active.is_(True)).all()
            return [watch_from_row(r) for r in rows]

        return await self._run(op)

    async def list_watches(self, owner_id: str | None = None, limit: int | None = None) -> list[Watch]:
        def op(db: Session) -> list[Watch]:
            q = db.query(WatchRow)
            if owner_id is not None:
                q = q.filter(WatchRow.owner_id == owner_id)
            q = q.order_by(WatchRow.created_at.desc())
            if limit is not None:
                q = q.limit(limit)
            return [watch_from_row(r) for r in q.all()]

        return await self._run(op)

    async def get_watch(self, watch_id: str) -> Watch:
        return await self._run(lambda db: watch_from_row(self._get_row(db, watch_id)))

    async def create_watch(self, watch: Watch) -> Watch:
        def op(db: Session) -> Watch:
            row = WatchRow(
                id=watch.id,
                owner_id=watch.owner_id,
                provider=watch.provider,
                legs=[leg.to_dict() for leg in watch.legs],
                is_round_trip=watch.is_round_trip,
                check_interval_seconds=watch.check_interval_seconds,
                is_active=watch.is_active,
                auto_hold_enabled=watch.auto_hold_enabled,
                last_checked_at=watch.last_checked_at,
                current_price=watch.current_price,
                booking_refs=watch.booking_refs,
                prior_reservation_code=watch.prior_reservation_code,
                passengers=watch.passengers,
            )
            db.add(row)
            db.flush()
            return watch_from_row(row)

        return await self._run(op)

    async def update_watch(self, watch_id: str, **fields: Any) -> Watch:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        def op(db: Session) -> Watch:
            row = self._get_row(db, watch_id)
            for key, value in fields.items():
                setattr(row, key, value)
            db.flush()
            return watch_from_row(row)

        return await self._run(op)

    async def delete_watch(self, watch_id: str) -> None:
        def op(db: Session) -> None:
            db.delete(self._get_row(db, watch_id))

        await self._run(op)

    # --- Price history ---

    async def append_price_sample(self, sample: PriceSample) -> None:
        def op(db: Session) -> None:
            db.add(
                PriceSampleRow(
                    watch_id=sample.watch_id,
                    observed_at=sample.observed_at,
                    price=sample.price,
                    persisted=sample.persisted,
                )
            )

        await self._run(op)

    # --- Reservations ---

    async def insert_reservation(self, record: ReservationRecord) -> None:
        def op(db: Session) -> None:
            if db.query(ReservationRow.id).filter(ReservationRow.code == record.code).first():
                raise StorageError(StorageErrorKind.CONFLICT, f"Reservation {record.code} already exists")
            db.add(
                ReservationRow(
                    code=record.code,
                    owner_id=record.owner_id,
                    provider=record.provider,
                    source_watch_id=record.source_watch_id,
                    itinerary=record.itinerary,
                    passengers=record.passengers,
                    price=record.price,
                    expires_at=record.expires_at,
                    status=record.status,
                    superseded_by=record.superseded_by,
                )
            )

        await self._run(op)

    async def supersede_reservation(self, code: str, superseded_by: str) -> None:
        def op(db: Session) -> None:
            row = db.query(ReservationRow).filter(ReservationRow.code == code).first()
            if row is None:
                raise StorageError(StorageErrorKind.NOT_FOUND, f"Reservation {code} not found")
            row.status = RESERVATION_STATUS_SUPERSEDED
            row.superseded_by = superseded_by

        await self._run(op)

    async def list_reservations(self, owner_id: str | None = None, limit: int = 100) -> list[ReservationRecord]:
        def op(db: Session) -> list[ReservationRecord]:
            q = db.query(ReservationRow)
            if owner_id is not None:
                q = q.filter(ReservationRow.owner_id == owner_id)
            rows = q.order_by(ReservationRow.created_at.desc(), ReservationRow.id.desc()).limit(limit).all()
            return [reservation_from_row(r) for r in rows]

        return await self._run(op)
