#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Allow running as "python tools/import_shapes.py" (so repo root is importable)
sys.path.insert(0, str(ROOT))

from app.db import open_project_db  # noqa: E402
from takeoff_core.shape_import import import_shapes_file  # noqa: E402
from takeoff_core.shapes_catalog import clear_shapes, count_shapes, list_classifications  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Import an AISC-style shape table (CSV/XLSX) into the shape catalog (SQLite)."
    )
    ap.add_argument("file", help="Shape table (.csv, .txt, .xlsx, .xlsm, .xls)")
    ap.add_argument("--db", required=True, help="Path to SQLite DB (e.g. db/shapes.sqlite)")
    ap.add_argument(
        "--strict-label",
        action="store_true",
        help="Fail when no label column is found instead of using column 0.",
    )
    ap.add_argument("--clear", action="store_true", help="Delete all shapes before importing.")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db_path = Path(args.db)
    conn = open_project_db(db_path)
    try:
        if args.clear:
            removed = clear_shapes(conn)
            print("cleared_shapes:", removed)

        report = import_shapes_file(conn, args.file, strict_label=args.strict_label)
        if not report.ok:
            print(f"ERROR: {report.error}", file=sys.stderr)
            return 1

        print("OK")
        print("db:", str(db_path))
        print("source:", report.source)
        print("imported:", report.imported)
        print("shapes_total:", count_shapes(conn))
        types = list_classifications(conn)
        print("classifications:", ", ".join(types) if types else "none")
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
