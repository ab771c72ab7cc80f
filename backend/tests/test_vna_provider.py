import json

import httpx
import pytest
from conftest import make_watch

from farewatch.core.errors import FetchError, FetchErrorKind
from farewatch.services.agency import AgencyClient, AgencyConfig
from farewatch.services.providers import get_reservation_provider
from farewatch.services.providers.base import ReservationProvider
from farewatch.services.providers.vna_provider import VnaProvider
from farewatch.services.types import Leg


def _provider(payload: dict, requests: list) -> VnaProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=payload)

    client = AgencyClient(AgencyConfig(base_url="https://agency.test", timeout=5), transport=httpx.MockTransport(handler))
    return VnaProvider(client)


async def test_business_request_and_advisory_quote():
    requests: list[httpx.Request] = []
    payload = {
        "status_code": 200,
        "body": [
            {"chiều_đi": {"giờ_cất_cánh": "07:00", "booking_key": "V1"}, "thông_tin_chung": {"giá_vé": "3500000"}},
            {"chiều_đi": {"giờ_cất_cánh": "09:00", "booking_key": "V2"}, "thông_tin_chung": {"giá_vé": "3200000"}},
        ],
    }
    provider = _provider(payload, requests)
    watch = make_watch(provider="VNA", legs=[Leg("HAN", "SGN", "2026-06-01", None, "business")])

    quote = await provider.check_price(watch)

    assert provider.authoritative_price is False
    assert quote.provider == "VNA"
    assert quote.price == 3_200_000
    assert quote.booking_refs == ("V2",)
    body = json.loads(requests[0].content)
    assert requests[0].url.path == "/vna/check-ve-v2"
    assert body["activedIDT"] == "BUS"
    assert body["filterTimeSlideMin0"] == "5"
    assert body["filterTimeSlideMax0"] == "2355"
    assert body["sochieu"] == "OW"


async def test_economy_fare_families():
    requests: list[httpx.Request] = []
    payload = {"status_code": 200, "body": [{"chiều_đi": {"giờ_cất_cánh": "07:00"}, "thông_tin_chung": {"giá_vé": "1"}}]}
    await _provider(payload, requests).check_price(make_watch(provider="VNA"))
    assert json.loads(requests[0].content)["activedIDT"] == "ADT,VFR"


async def test_options_without_price_are_ignored():
    payload = {"status_code": 200, "body": [{"chiều_đi": {"giờ_cất_cánh": "07:00"}, "thông_tin_chung": {"giá_vé": ""}}]}
    with pytest.raises(FetchError) as exc:
        await _provider(payload, []).check_price(make_watch(provider="VNA"))
    assert exc.value.kind is FetchErrorKind.EMPTY_RESULT


def test_vna_cannot_hold():
    assert not isinstance(VnaProvider(), ReservationProvider)
    assert get_reservation_provider("VNA") is None
    assert get_reservation_provider("VJ") is not None
