"""Registry of fare providers. Add new clients here."""
import logging
from typing import Any

from farewatch.services.providers.base import ReservationProvider

logger = logging.getLogger(__name__)

_providers: dict[str, Any] = {}


def register(name: str, provider: Any) -> None:
    """Register a provider (e.g. 'VJ', 'VNA')."""
    _providers[name] = provider
    logger.info("Registered fare provider: %s", name)


def get_provider(name: str) -> Any:
    """Get provider by name. Raises KeyError if unknown."""
    if name not in _providers:
        raise KeyError(f"Unknown provider: {name}. Available: {list(_providers.keys())}")
    return _providers[name]


def get_reservation_provider(name: str) -> ReservationProvider | None:
    """Provider that can hold fares for this id, or None when it only quotes prices."""
    provider = _providers.get(name)
    if isinstance(provider, ReservationProvider):
        return provider
    return None


def list_providers() -> list[str]:
    """List registered provider ids."""
    return list(_providers.keys())


def _init_registry() -> None:
    from farewatch.services.providers.vietjet_provider import VietjetProvider
    from farewatch.services.providers.vna_provider import VnaProvider

    register(VietjetProvider.provider_id, VietjetProvider())
    register(VnaProvider.provider_id, VnaProvider())


# Register built-in providers on first import
_init_registry()
