from decimal import Decimal

from fbrinvoicing.invoicing.items import InvoiceItem, compute_invoice, compute_item


def test_percent_rate_item():
    totals = compute_item(
        InvoiceItem(hs_code="8471.3010", rate="18%", quantity=Decimal("4"), retail_price=Decimal("1000"))
    )

    assert totals.unit_price == Decimal("250.00")
    assert totals.value_sales_excluding_st == Decimal("1000.00")
    assert totals.sales_tax == Decimal("180.00")
    assert totals.total == Decimal("1180.00")
    assert totals.uom is None


def test_bill_of_lading_rate_charges_per_quantity_and_forces_uom():
    totals = compute_item(
        InvoiceItem(
            hs_code="9801.0000",
            rate="60/bill",
            quantity=Decimal("3"),
            retail_price=Decimal("500"),
            uom="KG",
        )
    )

    assert totals.sales_tax == Decimal("180.00")
    assert totals.total == Decimal("680.00")
    assert totals.uom == "Bill of lading"


def test_exempt_item_and_extra_charges():
    totals = compute_item(
        InvoiceItem(
            hs_code="0101.2100",
            rate="Exempt",
            quantity=Decimal("1"),
            retail_price=Decimal("100"),
            further_tax=Decimal("3"),
            fed_payable=Decimal("2"),
            extra_tax=Decimal("1"),
            discount=Decimal("10"),
            sales_tax_withheld=Decimal("0.5"),
        )
    )

    assert totals.sales_tax == Decimal("0.00")
    assert totals.total == Decimal("96.50")


def test_manual_overrides_win():
    totals = compute_item(
        InvoiceItem(
            hs_code="8471.3010",
            rate="18%",
            quantity=Decimal("1"),
            retail_price=Decimal("100"),
            value_sales_excluding_st=Decimal("90"),
            sales_tax=Decimal("15"),
            total=Decimal("110"),
        )
    )

    assert totals.value_sales_excluding_st == Decimal("90.00")
    assert totals.sales_tax == Decimal("15.00")
    assert totals.total == Decimal("110.00")


def test_rounding_is_half_up_and_zero_quantity_is_safe():
    totals = compute_item(
        InvoiceItem(hs_code="1", rate="17%", quantity=Decimal("0"), retail_price=Decimal("10.05"))
    )

    assert totals.unit_price == Decimal("0.00")
    # 10.05 * 17% = 1.7085
    assert totals.sales_tax == Decimal("1.71")


def test_compute_invoice_sums_items():
    invoice = compute_invoice(
        [
            InvoiceItem(hs_code="a", rate="18%", quantity=Decimal("1"), retail_price=Decimal("100")),
            InvoiceItem(hs_code="b", rate="5/SqY", quantity=Decimal("10"), retail_price=Decimal("200")),
        ]
    )

    assert len(invoice.items) == 2
    assert invoice.value_sales_excluding_st == Decimal("300.00")
    assert invoice.sales_tax == Decimal("68.00")
    assert invoice.total == Decimal("368.00")
