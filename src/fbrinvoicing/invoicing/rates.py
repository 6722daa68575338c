"""Parsing of FBR sales-tax rate strings.

The gateway's rate lookups return strings such as ``"18%"``, ``"Exempt"``,
``"1.00/bill"`` (a fixed amount per bill of lading) or ``"5/SqY"`` (a fixed
amount per square yard). Rates carrying a per-unit suffix also dictate the
item's unit of measure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Literal, Optional

BILL_OF_LADING_MARKER = "/bill"
SQUARE_YARD_MARKER = "/SqY"

BILL_OF_LADING_UOM = "Bill of lading"
SQUARE_YARD_UOM = "SqY"

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass(frozen=True)
class SalesTaxRate:
    type: Literal["percent", "per_bill", "per_sqy", "exempt"]
    value: Decimal = Decimal("0")
    raw: str = ""

    @property
    def is_fixed_amount(self) -> bool:
        return self.type in ("per_bill", "per_sqy")


def is_bill_of_lading_rate(rate: Optional[str]) -> bool:
    """True when the rate is charged per bill of lading (contains ``/bill``)."""
    return bool(rate) and BILL_OF_LADING_MARKER in rate


def is_square_yard_rate(rate: Optional[str]) -> bool:
    return bool(rate) and SQUARE_YARD_MARKER in rate


def implied_uom(rate: Optional[str]) -> Optional[str]:
    """Unit of measure forced by the rate, if any."""
    if is_bill_of_lading_rate(rate):
        return BILL_OF_LADING_UOM
    if is_square_yard_rate(rate):
        return SQUARE_YARD_UOM
    return None


def _leading_number(text: str) -> Decimal:
    match = _NUMBER.search(text)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


def parse_rate(raw: Optional[str]) -> SalesTaxRate:
    """Classify a rate string; unparsable numbers count as zero."""

    text = (raw or "").strip()
    if not text or text.lower() == "exempt" or text == "0%":
        return SalesTaxRate(type="exempt", raw=text)
    if is_bill_of_lading_rate(text):
        return SalesTaxRate(type="per_bill", value=_leading_number(text.replace(BILL_OF_LADING_MARKER, "")), raw=text)
    if is_square_yard_rate(text):
        return SalesTaxRate(type="per_sqy", value=_leading_number(text.replace(SQUARE_YARD_MARKER, "")), raw=text)
    return SalesTaxRate(type="percent", value=_leading_number(text.replace("%", "")), raw=text)
