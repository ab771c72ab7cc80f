"""Agency API config. Base URL and timeout from settings (AGENCY_BASE_URL, AGENCY_TIMEOUT_SECONDS) or AgencyClient args."""
from farewatch.config import settings

# Paths per provider. Both price endpoints share the same response envelope.
VIETJET_PRICE_PATH = "/vj/check-ve-v2"
VIETJET_BOOKING_PATH = "/vj/booking"
VIETJET_RESERVATION_LOOKUP_PATH = "/vj/checkpnr"
VNA_PRICE_PATH = "/vna/check-ve-v2"


class AgencyConfig:
    """Base URL and timeout for the agency API."""

    __slots__ = ("base_url", "timeout")

    def __init__(self, *, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.agency_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.agency_timeout_seconds

    def headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
        }
