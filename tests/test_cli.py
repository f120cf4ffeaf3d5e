from __future__ import annotations

import csv
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, *args],
        capture_output=True,
        text=True,
        check=False,
        cwd=REPO_ROOT,
    )


def test_import_then_quote(tmp_path: Path) -> None:
    db_path = tmp_path / "shapes.sqlite"
    shapes_csv = tmp_path / "shapes.csv"
    shapes_csv.write_text("AISC_Manual_Label,W,d\nW14X90,90,14\nL4X4X1/4,6.6,4\n", encoding="utf-8")

    res = _run("tools/import_shapes.py", str(shapes_csv), "--db", str(db_path))
    assert res.returncode == 0, res.stderr
    assert "imported: 2" in res.stdout
    assert "classifications: L, W" in res.stdout

    records_csv = tmp_path / "records.csv"
    records_csv.write_text(
        "id,length_in,qty,shape_id,designation\n1,120,1,1,W14X90\n2,60,1,1,W14X90\n",
        encoding="utf-8",
    )
    pricing = tmp_path / "pricing.yaml"
    pricing.write_text("price_per_lb: 0.5\nmarkup_percent: 10\n", encoding="utf-8")
    out = tmp_path / "quote.csv"

    res = _run(
        "tools/run_quote.py",
        "--db", str(db_path),
        "--records-csv", str(records_csv),
        "--pricing", str(pricing),
        "--mode", "DESIGNATION",
        "--out", str(out),
    )
    assert res.returncode == 0, res.stderr
    assert "total_weight_lb: 1350.0" in res.stdout

    with out.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[1] == ["W14X90", "180.00", "15.00", "1350.0", "2", "675.00"]
    assert ["Total:", "$742.50"] in rows


def test_import_failure_exit_code(tmp_path: Path) -> None:
    res = _run("tools/import_shapes.py", str(tmp_path / "missing.csv"), "--db", str(tmp_path / "s.sqlite"))
    assert res.returncode == 1
    assert "File not found" in res.stderr


def test_run_quote_reports_bad_inputs(tmp_path: Path) -> None:
    db_path = tmp_path / "s.sqlite"
    bad_yaml = tmp_path / "pricing.yaml"
    bad_yaml.write_text("price_per_lb: [1, 2\n", encoding="utf-8")
    res = _run("tools/run_quote.py", "--db", str(db_path), "--pricing", str(bad_yaml))
    assert res.returncode == 2
    assert "ERROR: pricing" in res.stderr
    assert "Traceback" not in res.stderr

    negative = tmp_path / "negative.yaml"
    negative.write_text("markup_percent: -5\n", encoding="utf-8")
    res = _run("tools/run_quote.py", "--db", str(db_path), "--pricing", str(negative))
    assert res.returncode == 2
    assert "markup_percent" in res.stderr

    records_csv = tmp_path / "records.csv"
    records_csv.write_text("id,length_in\n1,abc\n", encoding="utf-8")
    res = _run("tools/run_quote.py", "--db", str(db_path), "--records-csv", str(records_csv))
    assert res.returncode == 2
    assert "ERROR: takeoff records" in res.stderr
    assert "Traceback" not in res.stderr


def test_run_quote_assigns_shapes_by_designation(tmp_path: Path) -> None:
    db_path = tmp_path / "shapes.sqlite"
    shapes_csv = tmp_path / "shapes.csv"
    shapes_csv.write_text("AISC_Manual_Label,W\nW14X90,90\n", encoding="utf-8")
    assert _run("tools/import_shapes.py", str(shapes_csv), "--db", str(db_path)).returncode == 0

    records_csv = tmp_path / "records.csv"
    records_csv.write_text("id,length_in,designation\n1,120,W14X90\n", encoding="utf-8")
    res = _run(
        "tools/run_quote.py",
        "--db", str(db_path),
        "--records-csv", str(records_csv),
        "--mode", "DESIGNATION",
        "--price-per-lb", "1",
        "--out", str(tmp_path / "q.csv"),
    )
    assert res.returncode == 0, res.stderr
    assert "total_weight_lb: 900.0" in res.stdout
