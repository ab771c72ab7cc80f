"""
Wire shapes for the agency fare search, shared by the VietJet and Vietnam Airlines
endpoints. Each provider module subclasses these for its own option type; results are
normalized into PriceQuote right away so nothing downstream sees these field names.

Response envelope:
    {"status_code": 200, "body": [
        {"chiều_đi": {"giờ_cất_cánh": "06:05", "BookingKey": "..."},
         "chiều_về": {...},                       # round trips only
         "thông_tin_chung": {"giá_vé": "1234000"}}
    ]}
"""
import re
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from farewatch.core.errors import FetchError, FetchErrorKind


class FareLeg(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    departure_time: str | None = Field(None, validation_alias=AliasChoices("giờ_cất_cánh", "departure_time"))
    booking_key: str | None = Field(None, validation_alias=AliasChoices("BookingKey", "booking_key"))

    @field_validator("departure_time", "booking_key", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip()
        return s or None


class FareSummary(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    price: int | None = Field(None, validation_alias=AliasChoices("giá_vé", "price"))

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, v: Any) -> int | None:
        """Prices arrive as strings, sometimes with separators ("1,234,000")."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        digits = re.sub(r"[^\d]", "", str(v))
        return int(digits) if digits else None


class FareOption(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    outbound: FareLeg | None = Field(None, validation_alias=AliasChoices("chiều_đi", "outbound"))
    inbound: FareLeg | None = Field(None, validation_alias=AliasChoices("chiều_về", "inbound"))
    summary: FareSummary = Field(
        default_factory=FareSummary, validation_alias=AliasChoices("thông_tin_chung", "summary")
    )

    @property
    def price(self) -> int | None:
        return self.summary.price

    def booking_refs(self, round_trip: bool) -> tuple[str | None, ...]:
        out = self.outbound.booking_key if self.outbound else None
        if not round_trip:
            return (out,)
        ret = self.inbound.booking_key if self.inbound else None
        return (out, ret)


OptionT = TypeVar("OptionT", bound=FareOption)


def parse_fare_options(data: dict[str, Any], option_model: type[OptionT]) -> list[OptionT]:
    """
    Unwrap the agency envelope into typed options.
    Raises FetchError UNREACHABLE (transport/provider status) or EMPTY_RESULT (no itineraries).
    Options without a parseable price are dropped.
    """
    if data.get("error"):
        raise FetchError(FetchErrorKind.UNREACHABLE, str(data["error"]))
    status_code = data.get("status_code")
    if status_code is not None and status_code != 200:
        raise FetchError(FetchErrorKind.UNREACHABLE, f"Provider status {status_code}")
    raw = data.get("body") or []
    if not isinstance(raw, list):
        raise FetchError(FetchErrorKind.UNREACHABLE, "Provider body is not a list")
    options: list[OptionT] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            opt = option_model.model_validate(item)
        except ValidationError:
            continue
        if opt.price is not None:
            options.append(opt)
    if not options:
        raise FetchError(FetchErrorKind.EMPTY_RESULT, "No itineraries returned")
    return options


def select_fare_option(
    options: list[OptionT],
    *,
    departure_time: str | None,
    return_time: str | None = None,
) -> OptionT:
    """
    Exact-time match when any time is requested: keep options whose departure (and
    return) time equals the requested one, take the first. Otherwise the cheapest
    option overall (first one wins a tie). Raises FetchError NO_TIME_MATCH.
    """
    if departure_time or return_time:
        for opt in options:
            dep_ok = not departure_time or (opt.outbound is not None and opt.outbound.departure_time == departure_time)
            ret_ok = not return_time or (opt.inbound is not None and opt.inbound.departure_time == return_time)
            if dep_ok and ret_ok:
                return opt
        wanted = " / ".join(t for t in (departure_time, return_time) if t)
        raise FetchError(FetchErrorKind.NO_TIME_MATCH, f"No itinerary departs at {wanted}")
    return min(options, key=lambda o: o.price)
