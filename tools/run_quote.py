#!/usr/bin/env python3

from __future__ import annotations

import argparse
import csv
import logging
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Allow running as "python tools/run_quote.py" (so repo root is importable)
sys.path.insert(0, str(ROOT))

from app.db import get_pricing, list_takeoff_records, open_project_db  # noqa: E402
from takeoff_core.pricing import load_pricing  # noqa: E402
from takeoff_core.quote_aggregation import (  # noqa: E402
    GROUP_BY_CLASSIFICATION,
    GROUP_BY_DESIGNATION,
    summarize_takeoff,
)
from takeoff_core.quote_export import write_report_csv  # noqa: E402
from takeoff_core.shapes_catalog import find_shape_by_designation  # noqa: E402
from takeoff_core.takeoff_records import TakeoffRecord, record_from_mapping  # noqa: E402

logger = logging.getLogger("tools.run_quote")


def _read_records_csv(path: Path, conn) -> list[TakeoffRecord]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        records = [record_from_mapping(row) for row in csv.DictReader(handle)]
    # Unassigned items take the shape their designation names.
    return [
        rec if rec.has_shape else replace(rec, shape_id=find_shape_by_designation(conn, rec.designation))
        for rec in records
    ]


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Group takeoff items into a priced quote and write the CSV report."
    )
    ap.add_argument("--db", required=True, help="Path to SQLite DB with the shape catalog.")
    ap.add_argument(
        "--records-csv",
        default=None,
        help="Takeoff records CSV (length_in, qty, shape_id, ...). Default: takeoff_items table.",
    )
    ap.add_argument("--pricing", default=None, help="Pricing YAML. Default: rates stored in the DB.")
    ap.add_argument("--material-rate", type=float, default=None, help="Material $/ft override.")
    ap.add_argument("--labor-rate", type=float, default=None, help="Labor $/ft override.")
    ap.add_argument("--markup", type=float, default=None, help="Markup %% override.")
    ap.add_argument("--price-per-lb", type=float, default=None, help="Material $/lb override.")
    ap.add_argument(
        "--mode",
        choices=(GROUP_BY_CLASSIFICATION, GROUP_BY_DESIGNATION),
        default=GROUP_BY_CLASSIFICATION,
        help="Grouping mode (default: CLASSIFICATION).",
    )
    ap.add_argument("--out", default="out/quote_summary.csv", help="Output CSV path.")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    conn = open_project_db(Path(args.db))
    try:
        try:
            rates = load_pricing(args.pricing) if args.pricing else get_pricing(conn)
        except (OSError, ValueError) as exc:
            print(f"ERROR: pricing: {exc}", file=sys.stderr)
            return 2
        overrides = {
            "material_rate_per_ft": args.material_rate,
            "labor_rate_per_ft": args.labor_rate,
            "markup_percent": args.markup,
            "price_per_lb": args.price_per_lb,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        for key, value in overrides.items():
            if value < 0:
                print(f"ERROR: {key} must be >= 0", file=sys.stderr)
                return 2
        if overrides:
            rates = replace(rates, **overrides)

        try:
            if args.records_csv:
                records = _read_records_csv(Path(args.records_csv), conn)
            else:
                records = list_takeoff_records(conn)
        except (OSError, ValueError) as exc:
            print(f"ERROR: takeoff records: {exc}", file=sys.stderr)
            return 2
        logger.debug("Loaded %d takeoff records", len(records))

        summary = summarize_takeoff(records, rates, conn=conn, mode=args.mode)
        out_path = write_report_csv(args.out, summary)
    finally:
        conn.close()

    print("OK")
    print("mode:", summary.mode)
    print("groups:", len(summary.lines))
    print("total_weight_lb:", round(summary.total_weight_lb, 1))
    print("grand_total:", round(summary.grand_total, 2))
    print("out:", str(out_path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
