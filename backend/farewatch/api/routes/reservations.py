"""Held reservations (auto-hold results), newest first."""
from typing import Any

from fastapi import APIRouter, Query, Request

from farewatch.core.constants import LIST_LIMIT
from farewatch.core.errors import FareWatchError, error_to_http
from farewatch.services.types import ReservationRecord

router = APIRouter()


def reservation_to_dict(r: ReservationRecord) -> dict[str, Any]:
    return {
        "code": r.code,
        "owner_id": r.owner_id,
        "provider": r.provider,
        "source_watch_id": r.source_watch_id,
        "itinerary": r.itinerary,
        "passengers": r.passengers,
        "price": r.price,
        "expires_at": r.expires_at.isoformat() if r.expires_at else None,
        "status": r.status,
        "superseded_by": r.superseded_by,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


@router.get("/reservations")
async def list_reservations(
    request: Request,
    owner_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=LIST_LIMIT),
) -> dict[str, Any]:
    try:
        rows = await request.app.state.watch_store.list_reservations(owner_id, limit=limit)
    except FareWatchError as e:
        raise error_to_http(e)
    return {"reservations": [reservation_to_dict(r) for r in rows]}
