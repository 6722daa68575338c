"""Invoice item tax computation.

For each item::

    unit_price        = retail_price / quantity
    value_excl_st     = retail_price
    sales_tax         = value_excl_st * rate%          (percent rates)
                      = fixed_amount * quantity        ("/bill" and "/SqY" rates)
                      = 0                              (exempt)
    total             = value_excl_st + sales_tax + further_tax + fed_payable
                        + extra_tax - discount + sales_tax_withheld

Manually entered values (``value_sales_excluding_st``, ``sales_tax``,
``total``) replace the computed ones. Amounts are rounded to 2 dp.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from fbrinvoicing.invoicing.rates import SalesTaxRate, implied_uom, parse_rate

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceItem:
    hs_code: str
    rate: str
    quantity: Decimal
    retail_price: Decimal
    uom: Optional[str] = None
    further_tax: Decimal = _ZERO
    fed_payable: Decimal = _ZERO
    extra_tax: Decimal = _ZERO
    discount: Decimal = _ZERO
    sales_tax_withheld: Decimal = _ZERO
    value_sales_excluding_st: Optional[Decimal] = None
    sales_tax: Optional[Decimal] = None
    total: Optional[Decimal] = None


@dataclass(frozen=True)
class ItemTotals:
    hs_code: str
    rate: SalesTaxRate
    uom: Optional[str]
    unit_price: Decimal
    value_sales_excluding_st: Decimal
    sales_tax: Decimal
    further_tax: Decimal
    fed_payable: Decimal
    extra_tax: Decimal
    discount: Decimal
    sales_tax_withheld: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    items: List[ItemTotals] = field(default_factory=list)
    value_sales_excluding_st: Decimal = _ZERO
    sales_tax: Decimal = _ZERO
    total: Decimal = _ZERO


def sales_tax_for(rate: SalesTaxRate, value_sales: Decimal, quantity: Decimal) -> Decimal:
    if rate.type == "exempt":
        return _ZERO
    if rate.is_fixed_amount:
        return rate.value * quantity
    return value_sales * rate.value / Decimal(100)


def compute_item(item: InvoiceItem) -> ItemTotals:
    rate = parse_rate(item.rate)
    unit_price = item.retail_price / item.quantity if item.quantity > 0 else _ZERO

    if item.value_sales_excluding_st is not None:
        value_sales = item.value_sales_excluding_st
    else:
        value_sales = _money(item.retail_price)

    if item.sales_tax is not None:
        sales_tax = item.sales_tax
    else:
        sales_tax = sales_tax_for(rate, value_sales, item.quantity)

    if item.total is not None:
        total = item.total
    else:
        total = (
            value_sales
            + sales_tax
            + item.further_tax
            + item.fed_payable
            + item.extra_tax
            - item.discount
            + item.sales_tax_withheld
        )

    return ItemTotals(
        hs_code=item.hs_code,
        rate=rate,
        uom=implied_uom(item.rate) or item.uom,
        unit_price=_money(unit_price),
        value_sales_excluding_st=_money(value_sales),
        sales_tax=_money(sales_tax),
        further_tax=_money(item.further_tax),
        fed_payable=_money(item.fed_payable),
        extra_tax=_money(item.extra_tax),
        discount=_money(item.discount),
        sales_tax_withheld=_money(item.sales_tax_withheld),
        total=_money(total),
    )


def compute_invoice(items: Sequence[InvoiceItem]) -> InvoiceTotals:
    computed = [compute_item(item) for item in items]
    return InvoiceTotals(
        items=computed,
        value_sales_excluding_st=sum((c.value_sales_excluding_st for c in computed), _ZERO),
        sales_tax=sum((c.sales_tax for c in computed), _ZERO),
        total=sum((c.total for c in computed), _ZERO),
    )
