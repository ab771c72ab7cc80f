"""Protocols for fare providers. All adapters return the same normalized shapes."""
from typing import Protocol, runtime_checkable

from farewatch.services.types import (
    PriceQuote,
    ReservationConfirmation,
    ReservationDetails,
    ReservationRequest,
    Watch,
)


class FareProvider(Protocol):
    """Interface for VietJet, Vietnam Airlines, etc. Same contract; only the request/response shape differs."""

    @property
    def provider_id(self) -> str:
        """Unique id ('VJ', 'VNA') stored in watches.provider."""
        ...

    @property
    def authoritative_price(self) -> bool:
        """True when the quote is bookable ground truth and may overwrite current_price."""
        ...

    async def check_price(self, watch: Watch) -> PriceQuote:
        """
        Price the watch's itinerary. Raises FetchError (UNREACHABLE, EMPTY_RESULT,
        NO_TIME_MATCH, INVALID_ITINERARY).
        """
        ...


@runtime_checkable
class ReservationProvider(Protocol):
    """Providers that can hold a fare and report on existing reservations."""

    async def create_reservation(self, request: ReservationRequest) -> ReservationConfirmation:
        """Hold the fare. Raises ReservationError (UNREACHABLE, REJECTED)."""
        ...

    async def get_reservation(self, code: str) -> ReservationDetails:
        """Look up an existing reservation. Raises ReservationError (UNREACHABLE, REJECTED when unknown)."""
        ...

    async def get_reservation_status(self, code: str) -> bool:
        """True when the reservation is finalized (paid / ticket issued)."""
        ...
