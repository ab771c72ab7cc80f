"""Itinerary preconditions and request fields shared by the agency fare endpoints."""
from datetime import date

from farewatch.core.errors import FetchError, FetchErrorKind
from farewatch.services.types import Leg, Watch


def validate_itinerary(watch: Watch) -> list[Leg]:
    """
    Local precondition check before any network call: one leg (two for round trips),
    each with origin, destination and an ISO date. Raises FetchError INVALID_ITINERARY.
    """
    needed = 2 if watch.is_round_trip else 1
    if len(watch.legs) < needed:
        raise FetchError(
            FetchErrorKind.INVALID_ITINERARY,
            f"{'Round trip' if watch.is_round_trip else 'One-way'} watch needs {needed} leg(s), has {len(watch.legs)}",
        )
    legs = watch.legs[:needed]
    for i, leg in enumerate(legs):
        if not leg.origin or not leg.destination:
            raise FetchError(FetchErrorKind.INVALID_ITINERARY, f"Leg {i} is missing origin or destination")
        try:
            date.fromisoformat(leg.date)
        except ValueError:
            raise FetchError(FetchErrorKind.INVALID_ITINERARY, f"Leg {i} has an invalid date: {leg.date!r}")
    return legs


def passenger_count_fields(watch: Watch) -> dict[str, str]:
    """adt/chd/inf as the agency expects them (strings). An empty manifest prices one adult."""
    adults, children, infants = watch.passenger_counts()
    return {
        "adt": str(max(adults, 1)),
        "chd": str(children),
        "inf": str(infants),
    }


def trip_type(watch: Watch) -> str:
    return "RT" if watch.is_round_trip else "OW"
