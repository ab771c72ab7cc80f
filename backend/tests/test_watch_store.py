from datetime import timedelta

import pytest
from conftest import T0, make_watch

from farewatch.core.errors import StorageError, StorageErrorKind
from farewatch.models.price_sample import PriceSample as PriceSampleRow
from farewatch.services.admin_service import clear_watch_state
from farewatch.services.types import Leg, PriceSample, ReservationRecord
from farewatch.services.watch_store import SqlWatchStore


@pytest.fixture
def store(session_factory):
    return SqlWatchStore(session_factory)


def _record(code="NEW123", watch_id="w-1", owner_id="owner-1"):
    return ReservationRecord(
        code=code,
        owner_id=owner_id,
        provider="VJ",
        source_watch_id=watch_id,
        itinerary={"legs": [{"origin": "SGN", "destination": "HAN", "date": "2026-04-10"}]},
        passengers=[{"last_name": "Nguyen", "type": "adult"}],
        price=900_000,
        expires_at=T0 + timedelta(hours=24),
    )


async def test_create_and_get_round_trips_fields(store):
    watch = make_watch(
        is_round_trip=True,
        legs=[Leg("SGN", "HAN", "2026-04-10", "06:05"), Leg("HAN", "SGN", "2026-04-15", None, "business")],
        prior_reservation_code="ABC123",
    )
    await store.create_watch(watch)

    loaded = await store.get_watch("w-1")

    assert loaded.legs == watch.legs
    assert loaded.is_round_trip
    assert loaded.passengers == watch.passengers
    assert loaded.prior_reservation_code == "ABC123"
    assert loaded.last_checked_at is None
    assert loaded.current_price is None


async def test_get_missing_watch_is_not_found(store):
    with pytest.raises(StorageError) as exc:
        await store.get_watch("nope")
    assert exc.value.kind is StorageErrorKind.NOT_FOUND


async def test_update_watch_returns_utc_timestamps(store):
    await store.create_watch(make_watch())

    updated = await store.update_watch("w-1", last_checked_at=T0, current_price=1_200_000, booking_refs=["K1"])

    assert updated.current_price == 1_200_000
    assert updated.booking_refs == ["K1"]
    assert updated.last_checked_at == T0
    assert updated.last_checked_at.tzinfo is not None


async def test_update_rejects_identity_fields(store):
    await store.create_watch(make_watch())
    with pytest.raises(ValueError):
        await store.update_watch("w-1", provider="VNA")


async def test_update_and_delete_missing_watch_are_not_found(store):
    with pytest.raises(StorageError) as exc:
        await store.update_watch("nope", is_active=False)
    assert exc.value.kind is StorageErrorKind.NOT_FOUND
    with pytest.raises(StorageError) as exc:
        await store.delete_watch("nope")
    assert exc.value.kind is StorageErrorKind.NOT_FOUND


async def test_list_active_excludes_paused(store):
    await store.create_watch(make_watch(id="a"))
    await store.create_watch(make_watch(id="b", is_active=False))

    active = await store.list_active_watches()

    assert [w.id for w in active] == ["a"]
    assert {w.id for w in await store.list_watches("owner-1")} == {"a", "b"}
    assert await store.list_watches("someone-else") == []


async def test_reservation_then_delete_leaves_no_active_watch(store):
    await store.create_watch(make_watch())

    await store.insert_reservation(_record())
    await store.delete_watch("w-1")

    assert await store.list_active_watches() == []
    held = await store.list_reservations("owner-1")
    assert [r.code for r in held] == ["NEW123"]
    assert held[0].status == "holding"
    assert held[0].expires_at == T0 + timedelta(hours=24)


async def test_duplicate_reservation_code_conflicts(store):
    await store.insert_reservation(_record())
    with pytest.raises(StorageError) as exc:
        await store.insert_reservation(_record())
    assert exc.value.kind is StorageErrorKind.CONFLICT


async def test_supersede_marks_prior_reservation(store):
    await store.insert_reservation(_record("OLD111"))
    await store.insert_reservation(_record("NEW222"))

    await store.supersede_reservation("OLD111", "NEW222")

    by_code = {r.code: r for r in await store.list_reservations()}
    assert by_code["OLD111"].status == "superseded"
    assert by_code["OLD111"].superseded_by == "NEW222"
    assert by_code["NEW222"].status == "holding"


async def test_supersede_unknown_code_is_not_found(store):
    with pytest.raises(StorageError) as exc:
        await store.supersede_reservation("NOPE00", "NEW123")
    assert exc.value.kind is StorageErrorKind.NOT_FOUND


async def test_list_reservations_newest_first(store):
    for code in ("AAA111", "BBB222", "CCC333"):
        await store.insert_reservation(_record(code))

    codes = [r.code for r in await store.list_reservations(limit=2)]

    assert codes == ["CCC333", "BBB222"]


async def test_price_samples_are_appended(store, session_factory):
    await store.append_price_sample(PriceSample("w-1", T0, 1_000_000, True))
    await store.append_price_sample(PriceSample("w-1", T0 + timedelta(minutes=5), 990_000, False))

    db = session_factory()
    try:
        rows = db.query(PriceSampleRow).order_by(PriceSampleRow.id).all()
    finally:
        db.close()
    assert [(r.price, r.persisted) for r in rows] == [(1_000_000, True), (990_000, False)]


async def test_clear_watch_state_keeps_reservations(store, session_factory):
    await store.create_watch(make_watch())
    await store.append_price_sample(PriceSample("w-1", T0, 900_000, True))
    await store.insert_reservation(_record())

    db = session_factory()
    try:
        deleted = clear_watch_state(db)
    finally:
        db.close()

    assert deleted == {"price_samples": 1, "watches": 1}
    assert await store.list_watches() == []
    assert [r.code for r in await store.list_reservations()] == ["NEW123"]


async def test_list_watches_limit_is_applied_in_the_query(store):
    for i in range(3):
        await store.create_watch(make_watch(id=f"w-{i}"))

    assert len(await store.list_watches(limit=2)) == 2
    assert len(await store.list_watches()) == 3
