#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path

import requests


def main() -> None:
    parser = argparse.ArgumentParser(description="Download the monthly reference sheet from a running service")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--api-key", default="ob-operator-dev-key")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True)
    parser.add_argument("--warehouse-workers-hours", type=float, default=0)
    parser.add_argument("--warehouse-workers-rate", type=float, default=0)
    parser.add_argument("--inbound-pallets", type=float, default=0)
    parser.add_argument("--pallet-storage-count", type=float, default=0)
    parser.add_argument("--returns-count", type=float, default=0)
    parser.add_argument("--reset-tablet-count", type=float, default=0)
    parser.add_argument("--output", default=None)
    args = parser.parse_args()

    body = {
        "year": args.year,
        "month": args.month,
        "warehouse_workers_hours": args.warehouse_workers_hours,
        "warehouse_workers_rate": args.warehouse_workers_rate,
        "inbound_pallets": args.inbound_pallets,
        "pallet_storage_count": args.pallet_storage_count,
        "returns_count": args.returns_count,
        "reset_tablet_count": args.reset_tablet_count,
    }
    response = requests.post(
        f"{args.base_url}/orders/export",
        json=body,
        headers={"X-API-Key": args.api_key},
        timeout=300,
    )
    if response.status_code == 502:
        print(json.dumps(response.json(), ensure_ascii=False, indent=2))
        raise SystemExit(1)
    response.raise_for_status()

    output = Path(args.output or f"reference-sheet-{args.year}-{args.month:02d}.xlsx")
    output.write_bytes(response.content)
    print(json.dumps({"output": str(output), "bytes": len(response.content)}, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
