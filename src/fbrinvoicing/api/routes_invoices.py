"""Invoice endpoints: gateway validate/submit proxy and local tax arithmetic."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from fbrinvoicing.api.deps import get_gateway
from fbrinvoicing.api.security import require_api_key
from fbrinvoicing.errors import GatewayError, MissingCredential, RemoteUnavailable
from fbrinvoicing.gateway.client import FBRGatewayClient
from fbrinvoicing.invoicing.items import InvoiceItem, ItemTotals, compute_invoice

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"],
    dependencies=[Depends(require_api_key)],
)

Environment = Literal["sandbox", "production"]


class ItemIn(BaseModel):
    hs_code: str = Field(..., min_length=1)
    rate: str = ""
    quantity: Decimal = Field(..., ge=0)
    retail_price: Decimal = Field(..., ge=0)
    uom: Optional[str] = None
    further_tax: Decimal = Decimal("0")
    fed_payable: Decimal = Decimal("0")
    extra_tax: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    sales_tax_withheld: Decimal = Decimal("0")
    value_sales_excluding_st: Optional[Decimal] = None
    sales_tax: Optional[Decimal] = None
    total: Optional[Decimal] = None

    model_config = ConfigDict(extra="forbid")

    def to_item(self) -> InvoiceItem:
        return InvoiceItem(**self.model_dump())


class ComputeRequest(BaseModel):
    items: List[ItemIn] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class ItemOut(BaseModel):
    hs_code: str
    rate_type: str
    rate_value: Decimal
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

    @classmethod
    def from_totals(cls, totals: ItemTotals) -> "ItemOut":
        return cls(
            hs_code=totals.hs_code,
            rate_type=totals.rate.type,
            rate_value=totals.rate.value,
            uom=totals.uom,
            unit_price=totals.unit_price,
            value_sales_excluding_st=totals.value_sales_excluding_st,
            sales_tax=totals.sales_tax,
            further_tax=totals.further_tax,
            fed_payable=totals.fed_payable,
            extra_tax=totals.extra_tax,
            discount=totals.discount,
            sales_tax_withheld=totals.sales_tax_withheld,
            total=totals.total,
        )


class ComputeResponse(BaseModel):
    items: List[ItemOut]
    value_sales_excluding_st: Decimal
    sales_tax: Decimal
    total: Decimal


@router.post("/items/compute", response_model=ComputeResponse)
def compute_items(req: ComputeRequest) -> ComputeResponse:
    totals = compute_invoice([item.to_item() for item in req.items])
    return ComputeResponse(
        items=[ItemOut.from_totals(item) for item in totals.items],
        value_sales_excluding_st=totals.value_sales_excluding_st,
        sales_tax=totals.sales_tax,
        total=totals.total,
    )


async def _proxy(gateway: FBRGatewayClient, payload: Dict[str, Any], environment: str, *, submit: bool) -> Any:
    try:
        if submit:
            return await gateway.submit_invoice(payload, environment)
        return await gateway.validate_invoice(payload, environment)
    except MissingCredential as exc:
        raise HTTPException(status_code=400, detail={"message": str(exc), "environment": exc.environment})
    except GatewayError as exc:
        return JSONResponse(
            status_code=502,
            content={"error": "GATEWAY_ERROR", "status_code": exc.status_code, "body": exc.body},
        )
    except RemoteUnavailable as exc:
        logger.warning("Gateway unavailable: %s", exc)
        raise HTTPException(status_code=503, detail={"message": str(exc)})


@router.post("/validate")
async def validate_invoice(
    payload: Dict[str, Any],
    environment: Environment = "sandbox",
    gateway: FBRGatewayClient = Depends(get_gateway),
) -> Any:
    """Forward an invoice to the gateway's validation endpoint."""
    return await _proxy(gateway, payload, environment, submit=False)


@router.post("/submit")
async def submit_invoice(
    payload: Dict[str, Any],
    environment: Environment = "sandbox",
    gateway: FBRGatewayClient = Depends(get_gateway),
) -> Any:
    """Post an invoice to the gateway for registration."""
    return await _proxy(gateway, payload, environment, submit=True)
