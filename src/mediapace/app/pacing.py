"""Pacing endpoints: warehouse actuals, search pacing, expected-to-date and plan-vs-actual."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from ..errors import ValidationError
from ..mediaplan import burst_from_mapping, normalize
from ..pacing import calculate_pacing, compute_to_date, time_elapsed_pct
from ..utils.dates import parse_date
from ..utils.money import to_float
from .deps import get_services
from .errors import to_http_exception
from ..services import EngineServices

router = APIRouter(prefix="/api", tags=["pacing"])

CACHE_HEADER = "X-Pacing-Cache"


class LineItemPacingRequest(BaseModel):
    mbaNumber: Optional[str] = None
    lineItemIds: list[str] = Field(default_factory=list)
    startDate: Optional[str] = None
    endDate: Optional[str] = None


class SearchPacingRequest(BaseModel):
    lineItemIds: list[str] = Field(default_factory=list)
    startDate: Optional[str] = None
    endDate: Optional[str] = None


class ExpectedRequest(BaseModel):
    bursts: list[dict[str, Any]] = Field(default_factory=list)
    asOfDate: str
    campaignStart: Optional[str] = None
    campaignEnd: Optional[str] = None


class PlanVsActualRequest(BaseModel):
    mbaNumber: Optional[str] = None
    mediaType: str
    records: list[dict[str, Any]] = Field(default_factory=list)
    asOfDate: str
    startDate: Optional[str] = None
    endDate: Optional[str] = None


def _as_of(raw: str):
    as_of = parse_date(raw)
    if as_of is None:
        raise to_http_exception(ValidationError(f"Invalid asOfDate: {raw!r}"))
    return as_of


@router.post("/pacing/line-items")
async def line_item_pacing(
    body: LineItemPacingRequest,
    response: Response,
    services: EngineServices = Depends(get_services),
):
    try:
        result = await services.pacing.fetch_cached(body.mbaNumber, body.lineItemIds, body.startDate, body.endDate)
    except Exception as exc:
        raise to_http_exception(exc) from exc

    response.headers[CACHE_HEADER] = str(result.state)
    return {
        "mbaNumber": body.mbaNumber,
        "cacheState": str(result.state),
        "count": len(result.value),
        "rows": [row.to_dict() for row in result.value],
    }


@router.post("/pacing/search")
async def search_pacing(
    body: SearchPacingRequest,
    response: Response,
    services: EngineServices = Depends(get_services),
):
    try:
        result = await services.search.fetch_cached(body.lineItemIds, body.startDate, body.endDate)
    except Exception as exc:
        raise to_http_exception(exc) from exc

    response.headers[CACHE_HEADER] = str(result.state)
    return {"cacheState": str(result.state), **result.value.to_dict()}


@router.post("/pacing/expected")
async def expected_to_date(body: ExpectedRequest):
    as_of = _as_of(body.asOfDate)
    bursts = [b for b in (burst_from_mapping(raw) for raw in body.bursts) if b is not None]
    start = parse_date(body.campaignStart) or min((b.start_date for b in bursts), default=None)
    end = parse_date(body.campaignEnd) or max((b.end_date for b in bursts), default=None)
    return {
        "asOfDate": as_of.isoformat(),
        "bursts": len(bursts),
        "expectedSpendToDate": to_float(compute_to_date(bursts, as_of)),
        "expectedDeliverablesToDate": to_float(compute_to_date(bursts, as_of, field="deliverable")),
        "timeElapsedPct": to_float(time_elapsed_pct(start, end, as_of)) if start and end else None,
    }


@router.post("/pacing/plan-vs-actual")
async def plan_vs_actual(
    body: PlanVsActualRequest,
    response: Response,
    services: EngineServices = Depends(get_services),
):
    as_of = _as_of(body.asOfDate)
    line_items = normalize(body.records, body.mediaType)
    if not line_items:
        raise HTTPException(status_code=400, detail={"error": "validation_error", "message": "no line items"})
    try:
        result = await services.pacing.fetch_cached(
            body.mbaNumber,
            [li.line_item_id for li in line_items],
            body.startDate,
            body.endDate,
        )
    except Exception as exc:
        raise to_http_exception(exc) from exc

    response.headers[CACHE_HEADER] = str(result.state)
    return {
        "cacheState": str(result.state),
        "lineItems": [calculate_pacing(li, result.value, as_of).to_dict() for li in line_items],
    }
