import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from conftest import ADULT, make_watch

from farewatch.core.errors import FetchError, FetchErrorKind, ReservationError, ReservationErrorKind
from farewatch.services.agency import AgencyClient, AgencyConfig
from farewatch.services.providers.vietjet_provider import VietjetProvider, parse_expiry
from farewatch.services.types import PASSENGER_CHILD, Leg, ReservationRequest

BASE_URL = "https://agency.test"


def _option(price: str, dep_time: str, key: str, ret_time: str | None = None, ret_key: str | None = None) -> dict:
    option = {
        "chiều_đi": {"giờ_cất_cánh": dep_time, "BookingKey": key},
        "thông_tin_chung": {"giá_vé": price},
    }
    if ret_time:
        option["chiều_về"] = {"giờ_cất_cánh": ret_time, "BookingKey": ret_key}
    return option


class Agency:
    """Records requests and answers with a canned response."""

    def __init__(self, status_code: int = 200, payload: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = payload if payload is not None else {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def provider(self) -> VietjetProvider:
        client = AgencyClient(AgencyConfig(base_url=BASE_URL, timeout=5), transport=httpx.MockTransport(self))
        return VietjetProvider(client)

    def body(self, i: int = 0) -> dict:
        return json.loads(self.requests[i].content)


# --- Price check ---


async def test_cheapest_option_without_exact_time():
    agency = Agency(
        payload={
            "status_code": 200,
            "body": [
                _option("1,250,000", "06:05", "K-A"),
                _option("990000", "21:40", "K-B"),
                _option("1100000", "12:00", "K-C"),
            ],
        }
    )

    quote = await agency.provider().check_price(make_watch())

    assert quote.price == 990_000
    assert quote.matched
    assert quote.booking_refs == ("K-B",)
    assert quote.provider == "VJ"
    assert str(agency.requests[0].url) == f"{BASE_URL}/vj/check-ve-v2"
    assert agency.body() == {
        "dep0": "SGN",
        "arr0": "HAN",
        "depdate0": "2026-04-10",
        "depdate1": "",
        "sochieu": "OW",
        "adt": "1",
        "chd": "0",
        "inf": "0",
    }


async def test_exact_time_picks_matching_option_even_if_pricier():
    agency = Agency(
        payload={"status_code": 200, "body": [_option("900000", "21:40", "K-B"), _option("1250000", "06:05", "K-A")]}
    )
    watch = make_watch(legs=[Leg("SGN", "HAN", "2026-04-10", "06:05")])

    quote = await agency.provider().check_price(watch)

    assert quote.price == 1_250_000
    assert quote.booking_refs == ("K-A",)


async def test_round_trip_matches_both_times_and_returns_both_refs():
    agency = Agency(
        payload={
            "status_code": 200,
            "body": [
                _option("2000000", "06:05", "O1", "18:00", "R1"),
                _option("2100000", "06:05", "O2", "20:30", "R2"),
            ],
        }
    )
    watch = make_watch(
        is_round_trip=True,
        legs=[Leg("SGN", "HAN", "2026-04-10", "06:05"), Leg("HAN", "SGN", "2026-04-15", "20:30")],
        passengers=[dict(ADULT, infant={"last_name": "Nguyen", "first_name": "Be"}), dict(ADULT, type=PASSENGER_CHILD)],
    )

    quote = await agency.provider().check_price(watch)

    assert quote.price == 2_100_000
    assert quote.booking_refs == ("O2", "R2")
    body = agency.body()
    assert body["sochieu"] == "RT"
    assert body["depdate1"] == "2026-04-15"
    assert (body["adt"], body["chd"], body["inf"]) == ("1", "1", "1")


async def test_no_time_match():
    agency = Agency(payload={"status_code": 200, "body": [_option("900000", "21:40", "K-B")]})
    watch = make_watch(legs=[Leg("SGN", "HAN", "2026-04-10", "06:05")])

    with pytest.raises(FetchError) as exc:
        await agency.provider().check_price(watch)
    assert exc.value.kind is FetchErrorKind.NO_TIME_MATCH


async def test_empty_body_is_empty_result():
    agency = Agency(payload={"status_code": 200, "body": []})
    with pytest.raises(FetchError) as exc:
        await agency.provider().check_price(make_watch())
    assert exc.value.kind is FetchErrorKind.EMPTY_RESULT


@pytest.mark.parametrize(
    "status_code,payload",
    [(500, {"detail": "boom"}), (200, {"status_code": 503, "body": []})],
)
async def test_provider_failures_are_unreachable(status_code, payload):
    agency = Agency(status_code, payload)
    with pytest.raises(FetchError) as exc:
        await agency.provider().check_price(make_watch())
    assert exc.value.kind is FetchErrorKind.UNREACHABLE


async def test_transport_error_is_unreachable():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = AgencyClient(AgencyConfig(base_url=BASE_URL, timeout=5), transport=httpx.MockTransport(refuse))
    with pytest.raises(FetchError) as exc:
        await VietjetProvider(client).check_price(make_watch())
    assert exc.value.kind is FetchErrorKind.UNREACHABLE


async def test_invalid_itinerary_makes_no_call():
    agency = Agency(payload={"status_code": 200, "body": []})
    watch = make_watch(is_round_trip=True, legs=[Leg("SGN", "HAN", "2026-04-10")])

    with pytest.raises(FetchError) as exc:
        await agency.provider().check_price(watch)

    assert exc.value.kind is FetchErrorKind.INVALID_ITINERARY
    assert agency.requests == []


# --- Reservations ---


def _request(round_trip=False):
    return ReservationRequest(
        provider="VJ",
        passengers=[dict(ADULT)],
        booking_refs=("OUT", "RET") if round_trip else ("OUT",),
        is_round_trip=round_trip,
        origin="SGN",
    )


async def test_create_reservation_success():
    agency = Agency(payload={"mã_giữ_vé": "ABC123", "mess": "Thành công", "hạn_thanh_toán": "18:02 17/11/2025"})

    confirmation = await agency.provider().create_reservation(_request(round_trip=True))

    assert confirmation.code == "ABC123"
    assert confirmation.expires_at == datetime(2025, 11, 17, 11, 2, tzinfo=timezone.utc)
    body = agency.body()
    assert str(agency.requests[0].url) == f"{BASE_URL}/vj/booking"
    assert body["bookingkey"] == "OUT"
    assert body["bookingkeychieuve"] == "RET"
    assert body["sochieu"] == "RT"
    assert body["sanbaydi"] == "SGN"
    assert body["ds_khach"]["người_lớn"][0]["Họ"] == "Nguyen"


async def test_one_way_reservation_has_no_return_key():
    agency = Agency(payload={"mã_giữ_vé": "ABC123", "mess": "Success"})

    confirmation = await agency.provider().create_reservation(_request())

    assert confirmation.expires_at is None
    assert "bookingkeychieuve" not in agency.body()
    assert agency.body()["sochieu"] == "OW"


async def test_unconfirmed_hold_is_rejected():
    agency = Agency(payload={"mã_giữ_vé": "", "mess": "Hết chỗ"})
    with pytest.raises(ReservationError) as exc:
        await agency.provider().create_reservation(_request())
    assert exc.value.kind is ReservationErrorKind.REJECTED


@pytest.mark.parametrize(
    "status_code,kind",
    [(400, ReservationErrorKind.REJECTED), (502, ReservationErrorKind.UNREACHABLE)],
)
async def test_booking_http_errors(status_code, kind):
    agency = Agency(status_code, {"detail": "nope"})
    with pytest.raises(ReservationError) as exc:
        await agency.provider().create_reservation(_request())
    assert exc.value.kind is kind


async def test_get_reservation_parses_itinerary_and_passengers():
    agency = Agency(
        payload={
            "status": "OK",
            "paymentstatus": True,
            "chieudi": {
                "departure": "SGN",
                "arrival": "HAN",
                "ngaycatcanh": "07/02/2026",
                "giocatcanh": "06:05",
                "loaive": "ECO",
            },
            "chieuve": {
                "departure": "HAN",
                "arrival": "SGN",
                "ngaycatcanh": "10/02/2026",
                "giocatcanh": "18:00",
                "loaive": "SKYBOSS",
            },
            "passengers": [
                {
                    "lastName": "NGUYEN",
                    "firstName": "VAN DUC",
                    "passportNumber": "B1234567",
                    "gender": "Male",
                    "quoctich": "VN",
                    "child": False,
                    "infant": [{"lastName": "NGUYEN", "firstName": "BE", "gender": "Unknown"}],
                }
            ],
        }
    )

    details = await agency.provider().get_reservation("ABC123")

    assert agency.requests[0].url.params["pnr"] == "ABC123"
    assert details.finalized
    assert details.is_round_trip
    assert details.legs[0] == Leg("SGN", "HAN", "2026-02-07", "06:05", "economy")
    assert details.legs[1].fare_class == "business"
    passenger = details.passengers[0]
    assert passenger["gender"] == "male"
    assert passenger["type"] == "adult"
    assert passenger["infant"]["gender"] == ""
    assert passenger["infant"]["nationality"] == "VN"


async def test_unpaid_reservation_is_not_finalized():
    agency = Agency(
        payload={
            "status": "OK",
            "paymentstatus": False,
            "chieudi": {"departure": "SGN", "arrival": "HAN", "ngaycatcanh": "07/02/2026", "loaive": "ECO"},
        }
    )
    assert await agency.provider().get_reservation_status("ABC123") is False


async def test_unknown_reservation_is_rejected():
    agency = Agency(payload={"status": "ERROR"})
    with pytest.raises(ReservationError) as exc:
        await agency.provider().get_reservation("ZZZ999")
    assert exc.value.kind is ReservationErrorKind.REJECTED


def test_parse_expiry_is_gmt_plus_7():
    parsed = parse_expiry("00:30 01/01/2026")
    assert parsed.utcoffset() == timedelta(hours=7)
    assert parsed.astimezone(timezone.utc) == datetime(2025, 12, 31, 17, 30, tzinfo=timezone.utc)
    assert parse_expiry("tomorrow") is None
    assert parse_expiry(None) is None
