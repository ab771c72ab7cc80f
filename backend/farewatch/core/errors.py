"""
Centralized error taxonomy for provider, reservation and storage failures.
Each error carries a kind; the engine branches on kinds and routes map them to HTTP
through ERROR_RULES so new kinds are added in one place.
"""
from __future__ import annotations

from enum import Enum

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------


class FetchErrorKind(str, Enum):
    UNREACHABLE = "unreachable"  # transport/HTTP failure or provider status != 200
    EMPTY_RESULT = "empty_result"  # provider returned no itineraries
    NO_TIME_MATCH = "no_time_match"  # exact-time filter matched nothing
    INVALID_ITINERARY = "invalid_itinerary"  # watch missing required fields; no call made


class ReservationErrorKind(str, Enum):
    UNREACHABLE = "unreachable"
    REJECTED = "rejected"
    ALREADY_ISSUED = "already_issued"


class StorageErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNREACHABLE = "unreachable"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FareWatchError(Exception):
    """Base for all engine errors. `kind` is one of the enums above."""

    def __init__(self, kind: Enum, message: str = ""):
        self.kind = kind
        self.message = message or kind.value
        super().__init__(self.message)


class FetchError(FareWatchError):
    kind: FetchErrorKind


class ReservationError(FareWatchError):
    kind: ReservationErrorKind


class StorageError(FareWatchError):
    kind: StorageErrorKind


# ---------------------------------------------------------------------------
# HTTP mapping: (exception type, kind, status_code). First match wins.
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_BAD_GATEWAY = 502
STATUS_SERVICE_UNAVAILABLE = 503
STATUS_INTERNAL_ERROR = 500

ERROR_RULES: list[tuple[type[FareWatchError], Enum | None, int]] = [
    (StorageError, StorageErrorKind.NOT_FOUND, STATUS_NOT_FOUND),
    (StorageError, StorageErrorKind.CONFLICT, STATUS_CONFLICT),
    (StorageError, StorageErrorKind.UNREACHABLE, STATUS_SERVICE_UNAVAILABLE),
    (FetchError, FetchErrorKind.INVALID_ITINERARY, STATUS_BAD_REQUEST),
    (FetchError, FetchErrorKind.UNREACHABLE, STATUS_SERVICE_UNAVAILABLE),
    (ReservationError, ReservationErrorKind.UNREACHABLE, STATUS_SERVICE_UNAVAILABLE),
    (ReservationError, ReservationErrorKind.REJECTED, STATUS_BAD_GATEWAY),
    (FetchError, None, STATUS_BAD_GATEWAY),
    (ReservationError, None, STATUS_CONFLICT),
]


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map an engine exception into an HTTPException.
    Uses ERROR_RULES for known kinds; anything else is a 500 with the exception message.
    """
    for exc_type, kind, status_code in ERROR_RULES:
        if isinstance(exc, exc_type) and (kind is None or exc.kind == kind):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
