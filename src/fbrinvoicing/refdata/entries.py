"""Reference entry types and the gateway response parser."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Records older than this are refetched on the next read.
CACHE_TTL_MS = 24 * 60 * 60 * 1000

# Joins the parts of a composite lookup key (rates, SRO schedules).
LOOKUP_KEY_SEPARATOR = "|"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class ReferenceEntry:
    """A single code/description pair returned by the gateway."""

    key: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceEntry":
        return cls(key=str(data["key"]), description=str(data.get("description") or ""))


class ReferenceKind(str, Enum):
    """Reference tables exposed by the gateway."""

    HS_CODES = "hs_codes"
    UOM = "uom"
    PROVINCES = "provinces"
    DOC_TYPES = "doc_types"
    RATES = "rates"
    SRO_SCHEDULE = "sro_schedule"

    @property
    def slug(self) -> str:
        return self.value

    @property
    def per_key(self) -> bool:
        return self in _PER_KEY_KINDS

    @property
    def gateway_path(self) -> str:
        return _GATEWAY_PATHS[self]

    def gateway_params(self, key: str | None = None) -> Dict[str, str]:
        if self is ReferenceKind.UOM:
            return {"hs_code": key or "", "annexure_id": "3"}
        if self is ReferenceKind.RATES:
            trans_type_id, supplier, on = split_lookup_key(key)
            return {"date": on, "transTypeId": trans_type_id, "originationSupplier": supplier}
        if self is ReferenceKind.SRO_SCHEDULE:
            rate_id, supplier, on = split_lookup_key(key)
            return {"rate_id": rate_id, "date": on, "origination_supplier_csv": supplier}
        return {}


_PER_KEY_KINDS = frozenset({ReferenceKind.UOM, ReferenceKind.RATES, ReferenceKind.SRO_SCHEDULE})

_GATEWAY_PATHS: Dict[ReferenceKind, str] = {
    ReferenceKind.HS_CODES: "pdi/v1/itemdesccode",
    ReferenceKind.UOM: "pdi/v2/HS_UOM",
    ReferenceKind.PROVINCES: "pdi/v1/provinces",
    ReferenceKind.DOC_TYPES: "pdi/v1/doctypecode",
    ReferenceKind.RATES: "pdi/v2/SaleTypeToRate",
    ReferenceKind.SRO_SCHEDULE: "pdi/v1/SroSchedule",
}


def gateway_date(day: Optional[date] = None) -> str:
    """Format ``day`` (default today) the way the rate endpoints expect: ``24-Feb-2024``."""
    day = day or date.today()
    return f"{day.day:02d}-{_MONTHS[day.month - 1]}-{day.year}"


def rate_lookup_key(trans_type_id: Any, origination_supplier: Any, on: Optional[str] = None) -> str:
    """Lookup key for the sale-type-to-rate table of one transaction type and province."""
    return LOOKUP_KEY_SEPARATOR.join([str(trans_type_id), str(origination_supplier), on or gateway_date()])


def sro_lookup_key(rate_id: Any, origination_supplier: Any, on: Optional[str] = None) -> str:
    """Lookup key for the SRO schedules that apply to one rate in one province."""
    return LOOKUP_KEY_SEPARATOR.join([str(rate_id), str(origination_supplier), on or gateway_date()])


def split_lookup_key(key: Optional[str], parts: int = 3) -> List[str]:
    values = (key or "").split(LOOKUP_KEY_SEPARATOR, parts - 1)
    return values + [""] * (parts - len(values))


# Field aliases seen in gateway payloads, tried in order.
_FIELD_ALIASES: Dict[ReferenceKind, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    ReferenceKind.HS_CODES: (
        ("hS_CODE", "hs_code", "code"),
        ("description", "desc", "item_description"),
    ),
    ReferenceKind.UOM: (("uoM_ID", "uom_id"), ("description",)),
    ReferenceKind.PROVINCES: (("stateProvinceCode",), ("stateProvinceDesc",)),
    ReferenceKind.DOC_TYPES: (("docTypeId",), ("docDescription",)),
    ReferenceKind.RATES: (("ratE_ID", "rate_id"), ("ratE_DESC", "rate_desc")),
    ReferenceKind.SRO_SCHEDULE: (("srO_ID", "sro_id"), ("srO_DESC", "sro_desc")),
}


@dataclass(frozen=True)
class ParseOk:
    entries: List[ReferenceEntry]


@dataclass(frozen=True)
class ParseError:
    reason: str


ParseResult = Union[ParseOk, ParseError]


def _first_present(item: Dict[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = item.get(name)
        if value is not None and value != "":
            return value
    return None


def parse_entries(kind: ReferenceKind, body: Any) -> ParseResult:
    """Convert a decoded gateway body into reference entries.

    The body must be a list of objects; every object must carry a key under
    one of the kind's aliases. A missing description becomes an empty string.
    """

    if not isinstance(body, list):
        return ParseError(f"expected a list for {kind.slug}, got {type(body).__name__}")
    key_names, desc_names = _FIELD_ALIASES[kind]
    entries: List[ReferenceEntry] = []
    for index, item in enumerate(body):
        if not isinstance(item, dict):
            return ParseError(f"item {index} of {kind.slug} is not an object")
        key = _first_present(item, key_names)
        if key is None:
            return ParseError(f"item {index} of {kind.slug} has no key field")
        description = _first_present(item, desc_names)
        entries.append(ReferenceEntry(key=str(key).strip(), description=str(description or "").strip()))
    return ParseOk(entries)
