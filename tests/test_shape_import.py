from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import pandas as pd
import pytest

from takeoff_core.shape_import import (
    ShapeImportError,
    find_header_row,
    import_shapes_file,
    import_table,
    normalize_cell,
    read_spreadsheet_rows,
    resolve_columns,
)
from takeoff_core.shapes_catalog import (
    count_shapes,
    find_shape_id,
    get_property,
    get_shape,
    query_shapes,
)


ROOT = Path(__file__).resolve().parents[1]


def _make_db(tmp_path: Path) -> sqlite3.Connection:
    con = sqlite3.connect(tmp_path / "shapes.sqlite")
    con.execute("PRAGMA foreign_keys = ON;")
    for mf in sorted((ROOT / "db" / "migrations").glob("*.sql")):
        con.executescript(mf.read_text(encoding="utf-8"))
    con.commit()
    return con


def test_label_and_type_table(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    n = import_table(
        con,
        ["Label", "W", "Type"],
        [["W14X90", "90.0", "W"], ["HSS4X4X.25", "6.87", "HSS"]],
    )
    assert n == 2
    assert count_shapes(con) == 2

    ws = query_shapes(con, "W", "", 10)
    assert [r.primary_label for r in ws] == ["W14X90"]
    assert get_property(con, ws[0].id, "W") == pytest.approx(90.0)

    hss = query_shapes(con, "HSS", "", 10)
    assert hss[0].weight_per_ft == pytest.approx(6.87)


def test_every_non_empty_column_becomes_a_property(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    import_table(
        con,
        ["Type", "EDI_Std_Nomenclature", "AISC_Manual_Label", "W", "d", "Note"],
        [["W", "W14X90", "W14X90", "90", "14.0", ""]],
    )
    shape = get_shape(con, find_shape_id(con, "W14X90"))
    assert shape is not None
    assert shape.alternate_name == "W14X90"
    assert set(shape.properties) == {"Type", "EDI_Std_Nomenclature", "AISC_Manual_Label", "W", "d"}
    assert shape.properties["d"].number == pytest.approx(14.0)


def test_shape_key_prefers_alternate_name(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    import_table(
        con,
        ["AISC_Manual_Label", "EDI_Std_Nomenclature", "W"],
        [["HSS4X4X1/4", "HSS4X4X.25", "6.87"], ["L4X4X1/4", "", "6.6"]],
    )
    assert find_shape_id(con, "HSS4X4X.25") is not None
    assert find_shape_id(con, "L4X4X1/4") is not None
    assert find_shape_id(con, "HSS4X4X1/4") is None


def test_reimport_updates_in_place(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    import_table(con, ["Label", "W"], [["W8X10", "10"]])
    sid = find_shape_id(con, "W8X10")
    import_table(con, ["Label", "W"], [["W8X10", "10.5"]])
    assert count_shapes(con) == 1
    assert find_shape_id(con, "W8X10") == sid
    assert get_property(con, sid, "W") == pytest.approx(10.5)


def test_n_unique_rows(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    rows = [[f"W{n}X{n + 5}", str(n + 5)] for n in range(4, 30)]
    assert import_table(con, ["Label", "W"], rows) == len(rows)
    assert count_shapes(con) == len(rows)
    assert len(query_shapes(con, "", "", len(rows) + 10)) == len(rows)


def test_rows_without_label_are_skipped(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    n = import_table(
        con,
        ["Label", "W", "Type"],
        [["", "5", "W"], ["  ", "", ""], [], ["C8X11.5", "11.5", "C"]],
    )
    assert n == 1
    assert count_shapes(con) == 1


def test_no_label_column_falls_back_to_first_column(tmp_path: Path, caplog) -> None:
    con = _make_db(tmp_path)
    with caplog.at_level(logging.WARNING, logger="takeoff_core.shape_import"):
        n = import_table(con, ["Designation", "W"], [["MC8X20", "20"]])
    assert n == 1
    assert "column 0" in caplog.text
    row = query_shapes(con, "MC", "", 10)[0]
    assert row.primary_label == "MC8X20"


def test_strict_label_rejects_missing_label_column(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    with pytest.raises(ShapeImportError):
        import_table(con, ["Designation", "W"], [["MC8X20", "20"]], strict_label=True)
    assert count_shapes(con) == 0


def test_empty_header_rejected(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    with pytest.raises(ShapeImportError):
        import_table(con, ["", "  "], [["W8X10"]])


def test_failed_import_leaves_catalog_unchanged(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    import_table(con, ["Label", "W"], [["W8X10", "10"]])
    con.executescript(
        """
        CREATE TRIGGER reject_bad BEFORE INSERT ON shapes
        WHEN NEW.shape_key = 'BAD'
        BEGIN
          SELECT RAISE(ABORT, 'bad row');
        END;
        """
    )
    with pytest.raises(ShapeImportError):
        import_table(con, ["Label", "W"], [["W10X12", "12"], ["BAD", "1"], ["W12X14", "14"]])

    assert count_shapes(con) == 1
    assert find_shape_id(con, "W10X12") is None
    assert not con.in_transaction


def test_failed_import_inside_open_transaction_leaves_catalog_unchanged(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    con.executescript(
        """
        CREATE TRIGGER reject_bad BEFORE INSERT ON shapes
        WHEN NEW.shape_key = 'BAD'
        BEGIN
          SELECT RAISE(ABORT, 'bad row');
        END;
        """
    )
    con.execute("INSERT INTO project_settings (key, value) VALUES ('pricing.price_per_lb', '1.0')")
    assert con.in_transaction

    with pytest.raises(ShapeImportError):
        import_table(con, ["Label", "W"], [["W10X12", "12"], ["BAD", "1"]])
    con.commit()

    assert find_shape_id(con, "W10X12") is None
    assert count_shapes(con) == 0
    assert con.execute("SELECT COUNT(*) FROM project_settings").fetchone()[0] == 1


def test_leftmost_label_synonym_wins() -> None:
    layout = resolve_columns(["Shape", "W", "Label"])
    assert layout.label_index == 0


def test_resolve_columns_is_case_insensitive() -> None:
    layout = resolve_columns(["type", "edi_std_nomenclature", "aisc_manual_label"])
    assert layout.label_index == 2
    assert layout.alternate_index == 1
    assert not layout.label_fallback


def test_normalize_cell() -> None:
    assert normalize_cell(' "W14X90" ') == "W14X90"
    assert normalize_cell(None) == ""
    assert normalize_cell(90) == "90"


def test_find_header_row_skips_title_rows() -> None:
    rows = [
        ["AISC Shapes Database v15.0", "", "", "", "", ""],
        ["", "", "", "", "", ""],
        ["Type", "EDI_Std_Nomenclature", "AISC_Manual_Label", "W", "d", "bf"],
        ["W", "W44X335", "W44X335", "335", "44", "15.9"],
    ]
    assert find_header_row(rows) == 2
    assert find_header_row([["a", "b"], ["c"]]) == -1


def test_import_csv_file(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    src = tmp_path / "shapes.csv"
    src.write_text(
        ' "AISC_Manual_Label" ,W,d\n'
        "W14X90,90,14.0\n"
        '"L4X4X1/4",6.6,4\n'
        ",,\n",
        encoding="utf-8",
    )
    report = import_shapes_file(con, src)
    assert report.ok
    assert report.imported == 2
    assert report.error is None
    assert get_property(con, find_shape_id(con, "L4X4X1/4"), "W") == pytest.approx(6.6)


def test_import_spreadsheet_file_with_title_rows(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    src = tmp_path / "shapes.xlsx"
    pd.DataFrame(
        [
            ["AISC Shapes Database", None, None, None, None],
            ["Type", "EDI_Std_Nomenclature", "AISC_Manual_Label", "W", "d"],
            ["W", "W14X90", "W14X90", "90", "14"],
            ["HSS", "HSS4X4X.25", "HSS4X4X1/4", "6.87", "4"],
        ]
    ).to_excel(src, header=False, index=False)

    header, rows = read_spreadsheet_rows(src)
    assert header[:3] == ["Type", "EDI_Std_Nomenclature", "AISC_Manual_Label"]
    assert len(rows) == 2

    report = import_shapes_file(con, src)
    assert report.imported == 2
    assert [r.classification for r in query_shapes(con, "", "", 10)] == ["HSS", "W"]


def test_file_level_failures_report_minus_one(tmp_path: Path) -> None:
    con = _make_db(tmp_path)

    missing = import_shapes_file(con, tmp_path / "nope.csv")
    assert missing.imported == -1
    assert not missing.ok
    assert "not found" in (missing.error or "")

    other = tmp_path / "shapes.json"
    other.write_text("{}", encoding="utf-8")
    unsupported = import_shapes_file(con, other)
    assert unsupported.imported == -1
    assert "Unsupported" in (unsupported.error or "")

    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert import_shapes_file(con, empty).imported == -1

    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"not a zip")
    assert import_shapes_file(con, broken).imported == -1


def test_nothing_matched_is_zero_not_failure(tmp_path: Path) -> None:
    con = _make_db(tmp_path)
    src = tmp_path / "blank.csv"
    src.write_text("Label,W\n,\n,\n", encoding="utf-8")
    report = import_shapes_file(con, src)
    assert report.ok
    assert report.imported == 0
