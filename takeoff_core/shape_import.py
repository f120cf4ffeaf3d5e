from __future__ import annotations

"""
Shape import from tabular sources (CSV / spreadsheet).

Column layout is not trusted: the label and alternate-name columns are found
by name, every other column is stored verbatim as a shape property. When a
header carries two synonyms of the same role (e.g. both "Label" and "Shape"),
the leftmost one wins.

Label column policy: when no label column is recognised, column 0 is used as
the label for every source type. ``strict_label=True`` turns that case into
a ShapeImportError instead.

An import runs in a single transaction: either every accepted row lands or
the catalog is left as it was.
"""

import csv
import logging
import sqlite3
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from .classification import classify
from .shapes_catalog import catalog_tx, upsert_property, upsert_shape

logger = logging.getLogger(__name__)

LABEL_COLUMN_NAMES = ("AISC_Manual_Label", "AISC Manual Label", "Label", "Shape")
ALTERNATE_COLUMN_NAMES = ("EDI_Std_Nomenclature", "EDI Name", "EDI", "Nomenclature")

HEADER_SCAN_ROWS = 10
HEADER_MIN_CELLS = 5

CSV_SUFFIXES = (".csv", ".txt")
SPREADSHEET_SUFFIXES = (".xlsx", ".xlsm", ".xls")


class ShapeImportError(ValueError):
    """Import failed as a whole; nothing was written."""


@dataclass(frozen=True)
class ColumnLayout:
    label_index: int
    alternate_index: int
    label_fallback: bool = False


@dataclass(frozen=True)
class ImportReport:
    """
    File-level outcome for UI/CLI callers.

    imported: rows upserted, 0 when nothing matched, -1 on hard failure.
    """

    source: str
    imported: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.imported >= 0


def normalize_cell(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().strip('"').strip()


def _match_column(headers: Sequence[str], names: Iterable[str]) -> int:
    wanted = {n.casefold() for n in names}
    for idx, header in enumerate(headers):
        if header.casefold() in wanted:
            return idx
    return -1


def resolve_columns(headers: Sequence[str], *, strict_label: bool = False) -> ColumnLayout:
    label_idx = _match_column(headers, LABEL_COLUMN_NAMES)
    alt_idx = _match_column(headers, ALTERNATE_COLUMN_NAMES)
    if label_idx >= 0:
        return ColumnLayout(label_index=label_idx, alternate_index=alt_idx)
    if strict_label:
        raise ShapeImportError(
            "No label column found (expected one of: " + ", ".join(LABEL_COLUMN_NAMES) + ")"
        )
    return ColumnLayout(label_index=0, alternate_index=alt_idx, label_fallback=True)


def _cell(row: Sequence[str], idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return row[idx]


def import_table(
    conn: sqlite3.Connection,
    header_row: Sequence[object],
    data_rows: Iterable[Sequence[object]],
    *,
    strict_label: bool = False,
) -> int:
    """
    Upsert shapes from a header row and data rows.

    Returns the number of rows that produced a shape. Rows without a label
    and alternate name are skipped silently.
    """
    headers = [normalize_cell(h) for h in (header_row or [])]
    if not any(headers):
        raise ShapeImportError("Input has no header row")

    layout = resolve_columns(headers, strict_label=strict_label)
    if layout.label_fallback:
        logger.warning(
            "No label column recognised; using column 0 (%r) as the shape label",
            headers[0],
        )

    try:
        imported, skipped = _upsert_rows(conn, headers, layout, data_rows)
    except sqlite3.Error as exc:
        raise ShapeImportError(f"Import aborted, catalog unchanged: {exc}") from exc

    logger.info("Imported %d shapes (%d rows skipped)", imported, skipped)
    return imported


def _upsert_rows(
    conn: sqlite3.Connection,
    headers: list[str],
    layout: ColumnLayout,
    data_rows: Iterable[Sequence[object]],
) -> tuple[int, int]:
    imported = 0
    skipped = 0
    with catalog_tx(conn):
        for row_no, raw in enumerate(data_rows, start=1):
            values = [normalize_cell(v) for v in raw]
            label = _cell(values, layout.label_index)
            alternate = _cell(values, layout.alternate_index)
            if not label and not alternate:
                skipped += 1
                logger.debug("Row %d skipped: no label or alternate name", row_no)
                continue

            shape_key = alternate or label
            if not shape_key:
                skipped += 1
                continue

            shape_id = upsert_shape(
                conn,
                shape_key,
                primary_label=label,
                alternate_name=alternate,
                classification=classify(label or alternate),
            )
            for prop_key, value in zip(headers, values):
                if not prop_key or not value:
                    continue
                upsert_property(conn, shape_id, prop_key, value)
            imported += 1
    return imported, skipped


def read_csv_rows(path: str | Path) -> tuple[list[str], list[list[str]]]:
    """Line 1 is always the header."""
    csv_path = Path(path)
    try:
        with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
            rows = [list(r) for r in csv.reader(handle)]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ShapeImportError(f"Failed to read CSV file {csv_path}: {exc}") from exc
    if not rows:
        raise ShapeImportError(f"CSV file is empty: {csv_path}")
    return rows[0], rows[1:]


def find_header_row(rows: Sequence[Sequence[str]]) -> int:
    """Index of the first row (within the scan window) with enough non-empty cells."""
    for idx, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if sum(1 for cell in row if normalize_cell(cell)) >= HEADER_MIN_CELLS:
            return idx
    return -1


def _frame_to_rows(df: pd.DataFrame) -> list[list[str]]:
    df = df.fillna("")
    return [[str(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_spreadsheet_rows(path: str | Path) -> tuple[list[str], list[list[str]]]:
    """First sheet; title/metadata rows above the real header are skipped."""
    xl_path = Path(path)
    try:
        df = pd.read_excel(xl_path, sheet_name=0, header=None, dtype=str)
    except FileNotFoundError as exc:
        raise ShapeImportError(f"Spreadsheet not found: {xl_path}") from exc
    except (OSError, ValueError, ImportError, zipfile.BadZipFile) as exc:
        raise ShapeImportError(f"Failed to load spreadsheet {xl_path}: {exc}") from exc

    rows = _frame_to_rows(df)
    if not rows:
        raise ShapeImportError(f"Spreadsheet is empty: {xl_path}")
    header_idx = find_header_row(rows)
    if header_idx < 0:
        raise ShapeImportError(f"Could not find header row in spreadsheet: {xl_path}")
    return rows[header_idx], rows[header_idx + 1 :]


def import_csv(conn: sqlite3.Connection, path: str | Path, *, strict_label: bool = False) -> int:
    header, rows = read_csv_rows(path)
    return import_table(conn, header, rows, strict_label=strict_label)


def import_spreadsheet(
    conn: sqlite3.Connection, path: str | Path, *, strict_label: bool = False
) -> int:
    header, rows = read_spreadsheet_rows(path)
    return import_table(conn, header, rows, strict_label=strict_label)


def import_shapes_file(
    conn: sqlite3.Connection, path: str | Path, *, strict_label: bool = False
) -> ImportReport:
    """Dispatch on the file extension and report failures as imported=-1."""
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    try:
        if not file_path.exists():
            raise ShapeImportError(f"File not found: {file_path}")
        if suffix in CSV_SUFFIXES:
            n = import_csv(conn, file_path, strict_label=strict_label)
        elif suffix in SPREADSHEET_SUFFIXES:
            n = import_spreadsheet(conn, file_path, strict_label=strict_label)
        else:
            raise ShapeImportError(f"Unsupported file format: {suffix or '(none)'}")
    except ShapeImportError as exc:
        logger.error("Shape import failed for %s: %s", file_path, exc)
        return ImportReport(source=str(file_path), imported=-1, error=str(exc))
    return ImportReport(source=str(file_path), imported=n)
