"""VietJet provider. Authoritative price + BookingKey per leg; supports holds and reservation lookup."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from farewatch.core.constants import PROVIDER_UTC_OFFSET_HOURS, PROVIDER_VIETJET
from farewatch.core.errors import ReservationError, ReservationErrorKind
from farewatch.services.agency import AgencyClient
from farewatch.services.agency.config import (
    VIETJET_BOOKING_PATH,
    VIETJET_PRICE_PATH,
    VIETJET_RESERVATION_LOOKUP_PATH,
)
from farewatch.services.providers.itinerary import passenger_count_fields, trip_type, validate_itinerary
from farewatch.services.providers.manifest import format_vietjet_manifest
from farewatch.services.providers.types import FareOption, parse_fare_options, select_fare_option
from farewatch.services.types import (
    PASSENGER_ADULT,
    PASSENGER_CHILD,
    Leg,
    PriceQuote,
    ReservationConfirmation,
    ReservationDetails,
    ReservationRequest,
    Watch,
)

logger = logging.getLogger(__name__)

BOOKING_SUCCESS_MESSAGES = ("Thành công", "Success")
ECONOMY_FARE_TYPES = ("ECO", "DELUXE")
_PROVIDER_TZ = timezone(timedelta(hours=PROVIDER_UTC_OFFSET_HOURS))


class VietjetOption(FareOption):
    """One VietJet itinerary option (chiều_đi / chiều_về carry BookingKey)."""


def parse_expiry(raw: str | None) -> datetime | None:
    """'18:02 17/11/2025' (GMT+7) -> aware datetime. None when missing or malformed."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        return datetime.strptime(raw.strip(), "%H:%M %d/%m/%Y").replace(tzinfo=_PROVIDER_TZ)
    except ValueError:
        logger.warning("Unparseable VietJet payment deadline: %r", raw)
        return None


def _parse_day(raw: str) -> str:
    """'07/02/2026' -> '2026-02-07'."""
    day, month, year = raw.strip().split("/")
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def _reservation_error(data: dict[str, Any]) -> ReservationError:
    status = data.get("status_code")
    if isinstance(status, int) and 400 <= status < 500:
        return ReservationError(ReservationErrorKind.REJECTED, str(data.get("detail") or data["error"]))
    return ReservationError(ReservationErrorKind.UNREACHABLE, str(data["error"]))


class VietjetProvider:
    provider_id = PROVIDER_VIETJET
    authoritative_price = True

    def __init__(self, client: AgencyClient | None = None) -> None:
        self._client = client or AgencyClient()

    # --- Price check ---

    def build_price_request(self, watch: Watch) -> dict[str, str]:
        legs = validate_itinerary(watch)
        body = {
            "dep0": legs[0].origin,
            "arr0": legs[0].destination,
            "depdate0": legs[0].date,
            "depdate1": legs[1].date if watch.is_round_trip else "",
            "sochieu": trip_type(watch),
        }
        body.update(passenger_count_fields(watch))
        return body

    async def check_price(self, watch: Watch) -> PriceQuote:
        body = self.build_price_request(watch)
        data = await self._client.post_json(VIETJET_PRICE_PATH, body)
        options = parse_fare_options(data, VietjetOption)
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

    # --- Reservations ---

    def build_reservation_request(self, request: ReservationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "ds_khach": format_vietjet_manifest(request.passengers),
            "bookingkey": request.booking_refs[0],
            "sochieu": "RT" if request.is_round_trip else "OW",
            "sanbaydi": request.origin,
        }
        if request.is_round_trip and len(request.booking_refs) > 1:
            body["bookingkeychieuve"] = request.booking_refs[1]
        return body

    async def create_reservation(self, request: ReservationRequest) -> ReservationConfirmation:
        data = await self._client.post_json(VIETJET_BOOKING_PATH, self.build_reservation_request(request))
        if data.get("error"):
            raise _reservation_error(data)
        code = (data.get("mã_giữ_vé") or "").strip()
        message = data.get("mess")
        if not code or message not in BOOKING_SUCCESS_MESSAGES:
            raise ReservationError(ReservationErrorKind.REJECTED, str(message or "Hold was not confirmed"))
        return ReservationConfirmation(code=code, expires_at=parse_expiry(data.get("hạn_thanh_toán")))

    async def get_reservation(self, code: str) -> ReservationDetails:
        data = await self._client.post_query(VIETJET_RESERVATION_LOOKUP_PATH, {"pnr": code})
        if data.get("error"):
            raise _reservation_error(data)
        if data.get("status") != "OK":
            raise ReservationError(ReservationErrorKind.REJECTED, f"Reservation {code} not found")
        try:
            legs = [self._parse_leg(data["chieudi"])]
            if data.get("chieuve"):
                legs.append(self._parse_leg(data["chieuve"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ReservationError(ReservationErrorKind.REJECTED, f"Reservation {code} has no readable itinerary: {e}")
        return ReservationDetails(
            code=code,
            finalized=bool(data.get("paymentstatus")),
            legs=legs,
            is_round_trip=len(legs) == 2,
            passengers=[self._parse_passenger(p) for p in data.get("passengers") or [] if isinstance(p, dict)],
        )

    async def get_reservation_status(self, code: str) -> bool:
        return (await self.get_reservation(code)).finalized

    @staticmethod
    def _parse_leg(raw: dict[str, Any]) -> Leg:
        fare_type = (raw.get("loaive") or "").strip().upper()
        return Leg(
            origin=raw["departure"].strip().upper(),
            destination=raw["arrival"].strip().upper(),
            date=_parse_day(raw["ngaycatcanh"]),
            time=(raw.get("giocatcanh") or "").strip() or None,
            fare_class="economy" if fare_type in ECONOMY_FARE_TYPES else "business",
        )

    @staticmethod
    def _parse_passenger(raw: dict[str, Any]) -> dict[str, Any]:
        gender = (raw.get("gender") or "").strip().lower()
        passenger: dict[str, Any] = {
            "last_name": raw.get("lastName") or "",
            "first_name": raw.get("firstName") or "",
            "passport": raw.get("passportNumber") or "",
            "gender": gender if gender in ("male", "female") else "",
            "nationality": raw.get("quoctich") or "",
            "type": PASSENGER_CHILD if raw.get("child") else PASSENGER_ADULT,
            "infant": None,
        }
        infants = raw.get("infant")
        if isinstance(infants, list) and infants and isinstance(infants[0], dict):
            inf = infants[0]
            inf_gender = (inf.get("gender") or "").strip().lower()
            passenger["infant"] = {
                "last_name": inf.get("lastName") or "",
                "first_name": inf.get("firstName") or "",
                "passport": "",
                "gender": inf_gender if inf_gender in ("male", "female") else "",
                "nationality": raw.get("quoctich") or "",
            }
        return passenger
