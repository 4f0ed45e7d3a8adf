"""Billing schedule, finance extraction and accrual endpoints."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..billing import (
    build_billing_schedule,
    build_monthly_inputs,
    compute_accrual_rows,
    extract_line_items,
    extract_service_amounts,
    merge_finance_line_items,
    normalize_month_key,
)
from ..mediaplan import normalize, sort_channels
from .errors import to_http_exception

router = APIRouter(prefix="/api", tags=["billing"])


class ScheduleRequest(BaseModel):
    months: Optional[list[dict[str, Any]]] = None
    lineItemsByType: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    feePctByType: dict[str, float] = Field(default_factory=dict)
    budgetIncludesFees: bool = False
    clientPaysForMedia: bool = False
    adservingByMonth: dict[str, float] = Field(default_factory=dict)
    productionByMonth: dict[str, float] = Field(default_factory=dict)


class FinanceRequest(BaseModel):
    schedule: Any = None
    year: int
    month: int
    billingAgencies: dict[str, str] = Field(default_factory=dict)


class AccrualRequest(BaseModel):
    versions: list[dict[str, Any]] = Field(default_factory=list)
    months: list[str] = Field(default_factory=list)
    clientPaysForMediaByLineItemId: dict[str, bool] = Field(default_factory=dict)


class NormalizeRequest(BaseModel):
    mbaNumber: Optional[str] = None
    mediaType: Optional[str] = None
    records: list[dict[str, Any]] = Field(default_factory=list)
    lineItemsByType: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)


@router.post("/mediaplans/normalize")
async def normalize_records(body: NormalizeRequest):
    containers = dict(body.lineItemsByType)
    if body.mediaType:
        containers.setdefault(body.mediaType, body.records)

    items = []
    for media_type, records in containers.items():
        items.extend(normalize(records, media_type, mba_number=body.mbaNumber))
    return {
        "mbaNumber": body.mbaNumber,
        "channels": sort_channels(list({item.channel for item in items})),
        "lineItems": [item.to_dict() for item in items],
    }


@router.post("/billing/schedule")
async def billing_schedule(body: ScheduleRequest):
    if body.months is not None:
        months: list[Any] = body.months
    else:
        months = build_monthly_inputs(
            {media_type: normalize(records, media_type) for media_type, records in body.lineItemsByType.items()},
            fee_pct_by_type=body.feePctByType,
            budget_includes_fees=body.budgetIncludesFees,
            client_pays_for_media=body.clientPaysForMedia,
            adserving_by_month=body.adservingByMonth,
            production_by_month=body.productionByMonth,
        )
    return {"months": build_billing_schedule(months)}


@router.post("/finance/line-items")
async def finance_line_items(body: FinanceRequest):
    try:
        items = extract_line_items(body.schedule, body.year, body.month, body.billingAgencies)
        services = extract_service_amounts(body.schedule, body.year, body.month)
    except Exception as exc:
        raise to_http_exception(exc) from exc
    merged = merge_finance_line_items(items)
    return {
        "year": body.year,
        "month": body.month,
        "lineItems": [item.to_dict() for item in merged],
        "serviceAmounts": services.to_dict(),
    }


@router.post("/finance/accrual")
async def finance_accrual(body: AccrualRequest):
    rows = compute_accrual_rows(body.versions, body.months, body.clientPaysForMediaByLineItemId)
    months = sorted({key for key in (normalize_month_key(m) for m in body.months) if key})
    return {"months": months, "rows": [row.to_dict() for row in rows]}
