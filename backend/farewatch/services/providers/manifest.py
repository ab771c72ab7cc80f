"""
Passenger manifest formatting for the VietJet booking call.

The engine stores passengers as plain dicts (last_name, first_name, passport, gender,
nationality, type, infant) and never looks inside them beyond counting. This module
turns them into the provider's `ds_khach` shape: names without Vietnamese diacritics,
each word capitalized, passengers grouped by category, infants listed separately.
"""
import unicodedata
from typing import Any

from farewatch.services.types import PASSENGER_CHILD

_GENDERS = {"male": "nam", "female": "nữ", "m": "nam", "f": "nữ"}


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    cleaned = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    # đ/Đ are base letters, not combining marks
    return cleaned.replace("đ", "d").replace("Đ", "D")


def _text(value: Any) -> str:
    """Manifest fields come from user JSON: None -> '', numbers and the like -> str."""
    if value is None:
        return ""
    return (value if isinstance(value, str) else str(value)).strip()


def format_name(name: Any) -> str:
    cleaned = strip_diacritics(_text(name))
    return " ".join(w[:1].upper() + w[1:].lower() for w in cleaned.split(" ") if w)


def _format_passenger(p: dict[str, Any]) -> dict[str, str]:
    gender = _text(p.get("gender"))
    return {
        "Họ": format_name(p.get("last_name")),
        "Tên": format_name(p.get("first_name")),
        "Hộ_chiếu": _text(p.get("passport")),
        "Giới_tính": _GENDERS.get(gender.lower(), gender),
        "Quốc_tịch": _text(p.get("nationality")),
    }


def format_vietjet_manifest(passengers: list[dict[str, Any]]) -> dict[str, list[dict[str, str]]]:
    """Group into người_lớn / trẻ_em / em_bé. Empty child and infant groups are omitted."""
    adults: list[dict[str, str]] = []
    children: list[dict[str, str]] = []
    infants: list[dict[str, str]] = []
    for p in passengers:
        if not isinstance(p, dict):
            continue
        if p.get("type") == PASSENGER_CHILD:
            children.append(_format_passenger(p))
            continue
        adults.append(_format_passenger(p))
        infant = p.get("infant")
        # Only a dict describes an infant; anything else is ignored
        if isinstance(infant, dict) and infant:
            infants.append(_format_passenger({**infant, "nationality": infant.get("nationality") or p.get("nationality")}))
    out: dict[str, list[dict[str, str]]] = {"người_lớn": adults}
    if children:
        out["trẻ_em"] = children
    if infants:
        out["em_bé"] = infants
    return out
