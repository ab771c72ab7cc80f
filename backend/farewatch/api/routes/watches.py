"""
Watches API: list, create, edit, delete, import from a reservation code, and manual check.

Owner is taken from the body or ?owner_id= (no auth; 'default' when omitted).
Engine objects (store, scheduler, watch service) live on app.state, built in main.lifespan.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from farewatch.core.constants import LIST_LIMIT
from farewatch.core.errors import FareWatchError, error_to_http
from farewatch.scheduler.watch_scheduler import WatchScheduler, next_check_at, progress
from farewatch.services.types import Leg, Trigger, Watch
from farewatch.services.watch_service import WatchService

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_OWNER_ID = "default"


class LegBody(BaseModel):
    origin: str = Field(..., min_length=3, max_length=3, description="IATA code, e.g. SGN")
    destination: str = Field(..., min_length=3, max_length=3)
    date: str = Field(..., description="YYYY-MM-DD")
    time: str | None = Field(None, description="Exact departure HH:MM; omit for the cheapest flight that day")
    fare_class: str = Field("economy", pattern="^(economy|business)$")

    def to_leg(self) -> Leg:
        return Leg.from_dict(self.model_dump())


class CreateWatchBody(BaseModel):
    owner_id: str = DEFAULT_OWNER_ID
    provider: str = Field(..., description="'VJ' or 'VNA'")
    legs: list[LegBody] = Field(..., min_length=1, max_length=2)
    is_round_trip: bool = False
    check_interval_seconds: int | None = Field(None, description="Defaults to one hour; at least five minutes")
    auto_hold_enabled: bool = False
    passengers: list[dict[str, Any]] = Field(default_factory=list)


class UpdateWatchBody(BaseModel):
    check_interval_seconds: int | None = None
    is_active: bool | None = None
    auto_hold_enabled: bool | None = None
    passengers: list[dict[str, Any]] | None = None


class ImportWatchBody(BaseModel):
    owner_id: str = DEFAULT_OWNER_ID
    code: str = Field(..., min_length=6, max_length=6, description="VietJet reservation code (PNR)")
    exact_time: bool = Field(False, description="Only match the reserved departure times")
    auto_hold_enabled: bool = True
    check_interval_seconds: int | None = None


def _service(request: Request) -> WatchService:
    return request.app.state.watch_service


def _scheduler(request: Request) -> WatchScheduler:
    return request.app.state.watch_scheduler


def watch_to_dict(watch: Watch, now: datetime, scheduler: WatchScheduler | None = None) -> dict[str, Any]:
    return {
        "id": watch.id,
        "owner_id": watch.owner_id,
        "provider": watch.provider,
        "route": watch.route(),
        "legs": [leg.to_dict() for leg in watch.legs],
        "is_round_trip": watch.is_round_trip,
        "check_interval_seconds": watch.check_interval_seconds,
        "is_active": watch.is_active,
        "auto_hold_enabled": watch.auto_hold_enabled,
        "last_checked_at": watch.last_checked_at.isoformat() if watch.last_checked_at else None,
        "current_price": watch.current_price,
        "prior_reservation_code": watch.prior_reservation_code,
        "passengers": watch.passengers,
        "progress": progress(watch, now),
        "next_check_at": next_check_at(watch, now).isoformat() if watch.is_active else None,
        "state": scheduler.state(watch.id).value if scheduler else None,
    }


@router.get("/watches")
async def list_watches(request: Request, owner_id: str | None = Query(None)) -> dict[str, Any]:
    """All watches (optionally for one owner), newest first, with check progress for the UI."""
    try:
        watches = await request.app.state.watch_store.list_watches(owner_id, limit=LIST_LIMIT)
    except FareWatchError as e:
        raise error_to_http(e)
    now = datetime.now(timezone.utc)
    scheduler = _scheduler(request)
    return {"watches": [watch_to_dict(w, now, scheduler) for w in watches]}


@router.post("/watches")
async def create_watch(body: CreateWatchBody, request: Request) -> dict[str, Any]:
    try:
        watch = await _service(request).create_watch(
            owner_id=body.owner_id.strip() or DEFAULT_OWNER_ID,
            provider=body.provider,
            legs=[leg.to_leg() for leg in body.legs],
            is_round_trip=body.is_round_trip,
            check_interval_seconds=body.check_interval_seconds,
            auto_hold_enabled=body.auto_hold_enabled,
            passengers=body.passengers,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FareWatchError as e:
        raise error_to_http(e)
    return {"ok": True, "watch": watch_to_dict(watch, datetime.now(timezone.utc), _scheduler(request))}


@router.post("/watches/import")
async def import_watch(body: ImportWatchBody, request: Request) -> dict[str, Any]:
    """Watch an existing VietJet reservation for a cheaper fare on the same flights."""
    try:
        watch = await _service(request).import_from_reservation(
            owner_id=body.owner_id.strip() or DEFAULT_OWNER_ID,
            code=body.code,
            exact_time=body.exact_time,
            auto_hold_enabled=body.auto_hold_enabled,
            check_interval_seconds=body.check_interval_seconds,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FareWatchError as e:
        raise error_to_http(e)
    return {"ok": True, "watch": watch_to_dict(watch, datetime.now(timezone.utc), _scheduler(request))}


@router.patch("/watches/{watch_id}")
async def update_watch(watch_id: str, body: UpdateWatchBody, request: Request) -> dict[str, Any]:
    try:
        watch = await _service(request).update_watch(watch_id, **body.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FareWatchError as e:
        raise error_to_http(e)
    return {"ok": True, "watch": watch_to_dict(watch, datetime.now(timezone.utc), _scheduler(request))}


@router.delete("/watches/{watch_id}")
async def delete_watch(watch_id: str, request: Request) -> dict[str, Any]:
    try:
        await _service(request).delete_watch(watch_id)
    except FareWatchError as e:
        raise error_to_http(e)
    return {"ok": True, "id": watch_id}


@router.post("/watches/{watch_id}/check")
async def check_watch(watch_id: str, request: Request) -> dict[str, Any]:
    """
    Check the price now. Returns what the cycle did (price change, notification, hold),
    or {"dropped": true} when a check for this watch is already running.
    """
    try:
        outcome = await _scheduler(request).trigger(watch_id, Trigger.MANUAL)
    except FareWatchError as e:
        raise error_to_http(e)
    if outcome is None:
        return {"dropped": True}
    return {"dropped": False, "outcome": outcome.to_dict()}
