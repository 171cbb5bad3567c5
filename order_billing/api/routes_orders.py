from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response
from pydantic import Field

from order_billing.api.deps import get_aggregator
from order_billing.api.utils import available_months, now_utc
from order_billing.core.security import Actor, get_actor
from order_billing.orders.aggregator import OrderAggregator
from order_billing.plenty.errors import PlentyApiError
from order_billing.reports import (
    XLSX_CONTENT_TYPE,
    VariableChargeInputs,
    build_reference_sheet,
    reference_sheet_filename,
    write_xlsx,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


class ExportRequest(VariableChargeInputs):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)


def _charge_context(aggregator: OrderAggregator) -> dict:
    engine = aggregator.engine
    return {
        "perOrderCharges": [rule.to_dict() for rule in engine.per_order_rules()],
        "monthlyCharges": [rule.to_dict() for rule in engine.monthly_rules()],
        "monthlyTotal": engine.calculate_monthly_total(),
    }


@router.get("/orders")
def list_orders(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    actor: Actor = Depends(get_actor),
    aggregator: OrderAggregator = Depends(get_aggregator),
):
    today = now_utc()
    year = year or today.year
    month = month or today.month

    payload = {
        "filters": {"year": year, "month": month},
        "availableMonths": available_months(),
        **_charge_context(aggregator),
    }
    try:
        summary = aggregator.build_month(year, month)
    except PlentyApiError as exc:
        logger.error(
            "failed to fetch orders: error_type=%s message=%s year=%s month=%s",
            exc.kind.value,
            exc.message,
            year,
            month,
        )
        return {**payload, "groupedOrders": [], "totalOrders": 0, "totalCharges": 0, "error": exc.to_payload()}

    return {
        **payload,
        "groupedOrders": [group.to_dict() for group in summary.groups],
        "totalOrders": summary.total_orders,
        "totalCharges": summary.total_charges,
        "error": None,
    }


@router.get("/orders/{order_id}")
def show_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    aggregator: OrderAggregator = Depends(get_aggregator),
):
    per_order = [rule.to_dict() for rule in aggregator.engine.per_order_rules()]
    try:
        order = aggregator.client.get_order(order_id)
        billing = aggregator.summarize_order(order, itemize=True)
    except PlentyApiError as exc:
        logger.error(
            "failed to fetch order: error_type=%s message=%s order_id=%s",
            exc.kind.value,
            exc.message,
            order_id,
        )
        return {"order": None, "perOrderCharges": per_order, "error": exc.to_payload()}

    return {"order": billing.to_dict(), "perOrderCharges": per_order, "error": None}


def _build_sheet(request: ExportRequest, aggregator: OrderAggregator):
    try:
        summary = aggregator.build_month(request.year, request.month, itemize=True)
    except PlentyApiError as exc:
        logger.error(
            "failed to fetch orders for export: error_type=%s message=%s year=%s month=%s",
            exc.kind.value,
            exc.message,
            request.year,
            request.month,
        )
        raise

    sheet = build_reference_sheet(
        sorted(summary.groups, key=lambda g: g.country_name),
        aggregator.engine.per_order_rules(),
        aggregator.engine.monthly_rules(),
        VariableChargeInputs(**request.model_dump(exclude={"year", "month"})),
        request.year,
        request.month,
        settings=aggregator.settings,
    )
    return summary, sheet


@router.post("/orders/export")
def export_orders(
    request: ExportRequest,
    actor: Actor = Depends(get_actor),
    aggregator: OrderAggregator = Depends(get_aggregator),
):
    summary, sheet = _build_sheet(request, aggregator)
    filename = reference_sheet_filename(request.year, request.month)
    logger.info(
        "reference sheet exported: actor=%s year=%s month=%s orders=%s grand_total=%s",
        actor.id,
        request.year,
        request.month,
        summary.total_orders,
        sheet.totals.grand_total if sheet.totals else None,
    )
    return Response(
        content=write_xlsx(sheet),
        media_type=XLSX_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "max-age=0",
        },
    )


@router.post("/orders/export/preview")
def preview_export(
    request: ExportRequest,
    actor: Actor = Depends(get_actor),
    aggregator: OrderAggregator = Depends(get_aggregator),
):
    summary, sheet = _build_sheet(request, aggregator)
    return {
        "filters": {"year": request.year, "month": request.month},
        "totalOrders": summary.total_orders,
        "totals": sheet.totals.to_dict() if sheet.totals else None,
    }
