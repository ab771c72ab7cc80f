"""Vietnam Airlines provider. Advisory price only: its booking keys expire fast, so no holds."""
from farewatch.core.constants import PROVIDER_VNA
from farewatch.services.agency import AgencyClient
from farewatch.services.agency.config import VNA_PRICE_PATH
from farewatch.services.providers.itinerary import passenger_count_fields, trip_type, validate_itinerary
from farewatch.services.providers.types import FareOption, parse_fare_options, select_fare_option
from farewatch.services.types import PriceQuote, Watch

# activedIDT: fare families searched per cabin
FARE_FAMILIES = {"business": "BUS", "economy": "ADT,VFR"}

# Departure time slide window (HHMM as the API expects, whole day)
TIME_SLIDE_MIN = "5"
TIME_SLIDE_MAX = "2355"


class VnaOption(FareOption):
    """One Vietnam Airlines itinerary option."""


class VnaProvider:
    provider_id = PROVIDER_VNA
    authoritative_price = False

    def __init__(self, client: AgencyClient | None = None) -> None:
        self._client = client or AgencyClient()

    def build_price_request(self, watch: Watch) -> dict[str, str]:
        legs = validate_itinerary(watch)
        body = {
            "dep0": legs[0].origin,
            "arr0": legs[0].destination,
            "depdate0": legs[0].date,
            "depdate1": legs[1].date if watch.is_round_trip else "",
            "activedVia": "0",
            "activedIDT": FARE_FAMILIES.get(legs[0].fare_class, FARE_FAMILIES["economy"]),
            "page": "1",
            "sochieu": trip_type(watch),
            "filterTimeSlideMin0": TIME_SLIDE_MIN,
            "filterTimeSlideMax0": TIME_SLIDE_MAX,
            "filterTimeSlideMin1": TIME_SLIDE_MIN,
            "filterTimeSlideMax1": TIME_SLIDE_MAX,
            "session_key": "",
        }
        body.update(passenger_count_fields(watch))
        return body

    async def check_price(self, watch: Watch) -> PriceQuote:
        body = self.build_price_request(watch)
        data = await self._client.post_json(VNA_PRICE_PATH, body)
        options = parse_fare_options(data, VnaOption)
        chosen = select_fare_option(
            options,
            departure_time=watch.legs[0].time,
            return_time=watch.legs[1].time if watch.is_round_trip else None,
        )
        return PriceQuote(
            provider=self.provider_id,
            price=chosen.price,
            matched=True,
            booking_refs=chosen.booking_refs(watch.is_round_trip),
        )
