from __future__ import annotations

import argparse
import json
from decimal import Decimal
from pathlib import Path

import httpx

from order_billing.api.utils import validate_month
from order_billing.billing.charges import ChargeEngine
from order_billing.billing.shipping import ShippingRateLookup
from order_billing.core.config import get_settings
from order_billing.core.logging import configure_logging
from order_billing.orders.aggregator import OrderAggregator
from order_billing.persistence.pg import init_db, session_scope
from order_billing.persistence.seed import seed_default_charges, seed_default_shipping_rates
from order_billing.plenty.client import PlentyClient
from order_billing.plenty.errors import PlentyApiError
from order_billing.reports import (
    VariableChargeInputs,
    build_reference_sheet,
    reference_sheet_filename,
    write_xlsx,
)


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Order billing CLI")
    top = parser.add_subparsers(dest="command", required=True)

    top.add_parser("statuses", help="List order statuses, sorted by status id")
    top.add_parser("variations", help="List item variations")
    top.add_parser("seed", help="Insert or update the default charges and shipping rates")
    clear = top.add_parser("clear-shipping-cache", help="Evict cached shipping rates in a running service")
    clear.add_argument("--base-url", default="http://localhost:8000")
    clear.add_argument("--api-key", default=None, help="Admin API key (default: settings.admin_api_key)")

    export = top.add_parser("export", help="Write the reference sheet for a month")
    export.add_argument("--year", type=int, required=True)
    export.add_argument("--month", type=int, required=True)
    export.add_argument("--warehouse-workers-hours", type=Decimal, default=Decimal("0"))
    export.add_argument("--warehouse-workers-rate", type=Decimal, default=Decimal("0"))
    export.add_argument("--inbound-pallets", type=Decimal, default=Decimal("0"))
    export.add_argument("--pallet-storage-count", type=Decimal, default=Decimal("0"))
    export.add_argument("--returns-count", type=Decimal, default=Decimal("0"))
    export.add_argument("--reset-tablet-count", type=Decimal, default=Decimal("0"))
    export.add_argument("--output", default=None, help="Target path (default: reference-sheet-YYYY-MM.xlsx)")

    return parser


def _list_statuses(client: PlentyClient) -> int:
    statuses = sorted(client.get_order_statuses(), key=lambda s: s.status_id)
    _print([{"status_id": s.status_id, "name": s.display_name, "color": s.color} for s in statuses])
    return 0


def _list_variations(client: PlentyClient) -> int:
    _print([{"id": v.id, "item_id": v.item_id, "label": v.label} for v in client.get_variations()])
    return 0


def _seed() -> int:
    init_db()
    with session_scope() as session:
        charges = seed_default_charges(session)
        rates = seed_default_shipping_rates(session)
    _print({"charges": charges, "shipping_rates": rates})
    return 0


def _clear_shipping_cache(args: argparse.Namespace) -> int:
    api_key = args.api_key or get_settings().admin_api_key
    response = httpx.post(
        f"{args.base_url.rstrip('/')}/admin/shipping-rates/cache/clear",
        headers={"X-API-Key": api_key},
        timeout=30,
    )
    response.raise_for_status()
    _print(response.json())
    return 0


def _export(args: argparse.Namespace, client: PlentyClient) -> int:
    inputs = VariableChargeInputs(
        warehouse_workers_hours=args.warehouse_workers_hours,
        warehouse_workers_rate=args.warehouse_workers_rate,
        inbound_pallets=args.inbound_pallets,
        pallet_storage_count=args.pallet_storage_count,
        returns_count=args.returns_count,
        reset_tablet_count=args.reset_tablet_count,
    )
    output = Path(args.output or reference_sheet_filename(args.year, args.month))

    init_db()
    with session_scope() as session:
        engine = ChargeEngine(session, ShippingRateLookup(session))
        aggregator = OrderAggregator(client, engine)
        summary = aggregator.build_month(args.year, args.month, itemize=True)
        sheet = build_reference_sheet(
            sorted(summary.groups, key=lambda g: g.country_name),
            engine.per_order_rules(),
            engine.monthly_rules(),
            inputs,
            args.year,
            args.month,
        )
    output.write_bytes(write_xlsx(sheet))
    _print(
        {
            "output": str(output),
            "total_orders": summary.total_orders,
            "totals": sheet.totals.to_dict() if sheet.totals else None,
        }
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "seed":
        return _seed()
    if args.command == "clear-shipping-cache":
        return _clear_shipping_cache(args)
    if args.command == "export":
        try:
            validate_month(args.year, args.month)
        except ValueError as exc:
            parser.error(str(exc))

    try:
        with PlentyClient(settings=get_settings()) as client:
            if args.command == "statuses":
                return _list_statuses(client)
            if args.command == "variations":
                return _list_variations(client)
            if args.command == "export":
                return _export(args, client)
    except PlentyApiError as exc:
        _print({"error": exc.to_payload(), "detail": exc.message})
        return 1

    parser.error("unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
