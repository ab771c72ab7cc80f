"""
Fare providers: VietJet, Vietnam Airlines.
Each provider builds its own request and parses its own response, but returns the same
normalized PriceQuote so the scheduler, comparator and auto-hold stay provider-agnostic.
"""
from farewatch.services.providers.base import FareProvider, ReservationProvider
from farewatch.services.providers.registry import get_provider, get_reservation_provider, list_providers

__all__ = [
    "FareProvider",
    "ReservationProvider",
    "get_provider",
    "get_reservation_provider",
    "list_providers",
]
