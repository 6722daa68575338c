from decimal import Decimal

import pytest

from fbrinvoicing.invoicing.rates import (
    implied_uom,
    is_bill_of_lading_rate,
    is_square_yard_rate,
    parse_rate,
)


@pytest.mark.parametrize(
    "raw,kind,value",
    [
        ("18%", "percent", Decimal("18")),
        ("17.5%", "percent", Decimal("17.5")),
        ("1.00/bill", "per_bill", Decimal("1.00")),
        ("Rs.5/SqY", "per_sqy", Decimal("5")),
        ("Exempt", "exempt", Decimal("0")),
        ("EXEMPT", "exempt", Decimal("0")),
        ("0%", "exempt", Decimal("0")),
        ("", "exempt", Decimal("0")),
        (None, "exempt", Decimal("0")),
    ],
)
def test_parse_rate(raw, kind, value):
    rate = parse_rate(raw)

    assert rate.type == kind
    assert rate.value == value


def test_fixed_amount_rates():
    assert parse_rate("1.00/bill").is_fixed_amount
    assert parse_rate("5/SqY").is_fixed_amount
    assert not parse_rate("18%").is_fixed_amount


def test_predicates_and_implied_uom():
    assert is_bill_of_lading_rate("60/bill")
    assert not is_bill_of_lading_rate("18%")
    assert not is_bill_of_lading_rate(None)
    assert is_square_yard_rate("5/SqY")

    assert implied_uom("60/bill") == "Bill of lading"
    assert implied_uom("5/SqY") == "SqY"
    assert implied_uom("18%") is None
