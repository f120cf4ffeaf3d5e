from __future__ import annotations

"""
Shape catalog (SQLite, EAV).

Tables (see db/migrations/0001_shapes.sql):
- shapes(id, shape_key, primary_label, alternate_name, classification)
- shape_props(shape_id, prop_key, prop_value, prop_value_num)

Every function takes an explicit connection. Writes made outside of
``catalog_tx`` are committed immediately; inside it they join the batch.
A batch opened while the caller already has a transaction runs as a
savepoint and is undone on its own when it fails.

Lookup misses are not errors: ``get_property`` returns 0.0 for an unknown
shape, an unknown key, a non-numeric value or a closed/missing connection,
so costing code treats "no data" as "contributes nothing".
"""

import contextlib
import logging
import math
import sqlite3
from dataclasses import dataclass, field
from typing import Iterator

logger = logging.getLogger(__name__)

PROP_WEIGHT_PER_FT = "W"
PROP_DEPTH = "d"
PROP_FLANGE_WIDTH = "bf"

DEFAULT_QUERY_LIMIT = 100


@dataclass(frozen=True)
class PropertyValue:
    text: str
    number: float | None = None


@dataclass
class ShapeRecord:
    id: int
    shape_key: str
    primary_label: str = ""
    alternate_name: str = ""
    classification: str = ""
    properties: dict[str, PropertyValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ShapeRow:
    """Denormalized row for pickers and listings."""

    id: int
    shape_key: str
    primary_label: str
    alternate_name: str
    classification: str
    weight_per_ft: float = 0.0
    depth: float = 0.0
    flange_width: float = 0.0


@contextlib.contextmanager
def catalog_tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    # Inside an open transaction: a savepoint, so a failure undoes only this batch.
    if conn.in_transaction:
        conn.execute("SAVEPOINT catalog_tx")
        try:
            yield conn
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK TO catalog_tx")
                conn.execute("RELEASE catalog_tx")
            raise
        conn.execute("RELEASE catalog_tx")
        return
    conn.execute("BEGIN")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def parse_number(text: str | None) -> float | None:
    if text is None:
        return None
    value = str(text).strip()
    if not value:
        return None
    try:
        num = float(value)
    except ValueError:
        return None
    if math.isnan(num):
        return None
    return num


def upsert_shape(
    conn: sqlite3.Connection,
    shape_key: str,
    primary_label: str = "",
    alternate_name: str = "",
    classification: str = "",
) -> int:
    key = (shape_key or "").strip()
    if not key:
        raise ValueError("shape_key must not be empty")
    with catalog_tx(conn):
        conn.execute(
            """
            INSERT INTO shapes (shape_key, primary_label, alternate_name, classification)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(shape_key) DO UPDATE SET
              primary_label = excluded.primary_label,
              alternate_name = excluded.alternate_name,
              classification = excluded.classification,
              updated_at = datetime('now')
            """,
            (key, primary_label or "", alternate_name or "", classification or ""),
        )
        row = conn.execute("SELECT id FROM shapes WHERE shape_key = ?", (key,)).fetchone()
    return int(row[0])


def upsert_property(
    conn: sqlite3.Connection, shape_id: int, prop_key: str, text_value: str
) -> float | None:
    """Store the text and (when parseable) the numeric value; returns the number."""
    if not prop_key:
        raise ValueError("prop_key must not be empty")
    text = "" if text_value is None else str(text_value)
    number = parse_number(text)
    with catalog_tx(conn):
        conn.execute(
            """
            INSERT INTO shape_props (shape_id, prop_key, prop_value, prop_value_num)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(shape_id, prop_key) DO UPDATE SET
              prop_value = excluded.prop_value,
              prop_value_num = excluded.prop_value_num
            """,
            (int(shape_id), prop_key, text, number),
        )
    return number


def _fetch_one(conn: sqlite3.Connection | None, sql: str, params: tuple) -> tuple | None:
    if conn is None:
        return None
    try:
        return conn.execute(sql, params).fetchone()
    except sqlite3.ProgrammingError:
        # Closed connection.
        return None


def get_property(conn: sqlite3.Connection | None, shape_id: int | None, prop_key: str) -> float:
    if shape_id is None or int(shape_id) < 0:
        return 0.0
    row = _fetch_one(
        conn,
        "SELECT prop_value_num FROM shape_props WHERE shape_id = ? AND prop_key = ?",
        (int(shape_id), prop_key),
    )
    if row is None or row[0] is None:
        return 0.0
    return float(row[0])


def get_shape_label(conn: sqlite3.Connection | None, shape_id: int | None) -> str:
    if shape_id is None or int(shape_id) < 0:
        return ""
    row = _fetch_one(conn, "SELECT primary_label FROM shapes WHERE id = ?", (int(shape_id),))
    return str(row[0] or "") if row is not None else ""


def find_shape_id(conn: sqlite3.Connection, shape_key: str) -> int | None:
    row = conn.execute(
        "SELECT id FROM shapes WHERE shape_key = ?", ((shape_key or "").strip(),)
    ).fetchone()
    return int(row[0]) if row else None


def find_shape_by_designation(conn: sqlite3.Connection | None, designation: str | None) -> int | None:
    """
    Catalog id for a takeoff designation such as "W14X90".

    Exact match, shape key first, then primary label, then alternate name.
    None when nothing matches (or no catalog is available).
    """
    text = (designation or "").strip()
    if not text:
        return None
    row = _fetch_one(
        conn,
        """
        SELECT id FROM shapes
        WHERE shape_key = ? OR primary_label = ? OR alternate_name = ?
        ORDER BY (shape_key = ?) DESC, (primary_label = ?) DESC, id ASC
        LIMIT 1
        """,
        (text, text, text, text, text),
    )
    return int(row[0]) if row is not None else None


def get_shape(conn: sqlite3.Connection, shape_id: int) -> ShapeRecord | None:
    row = conn.execute(
        """
        SELECT id, shape_key, primary_label, alternate_name, classification
        FROM shapes
        WHERE id = ?
        """,
        (int(shape_id),),
    ).fetchone()
    if row is None:
        return None
    props = conn.execute(
        "SELECT prop_key, prop_value, prop_value_num FROM shape_props WHERE shape_id = ?",
        (int(shape_id),),
    ).fetchall()
    return ShapeRecord(
        id=int(row[0]),
        shape_key=str(row[1]),
        primary_label=str(row[2] or ""),
        alternate_name=str(row[3] or ""),
        classification=str(row[4] or ""),
        properties={
            str(p[0]): PropertyValue(
                text=str(p[1]), number=float(p[2]) if p[2] is not None else None
            )
            for p in props
        },
    )


def list_classifications(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT classification
        FROM shapes
        WHERE classification IS NOT NULL AND classification <> ''
        ORDER BY classification ASC
        """
    ).fetchall()
    return [str(r[0]) for r in rows]


def count_shapes(conn: sqlite3.Connection) -> int:
    return int(conn.execute("SELECT COUNT(*) FROM shapes").fetchone()[0])


def has_shapes(conn: sqlite3.Connection) -> bool:
    return count_shapes(conn) > 0


def clear_shapes(conn: sqlite3.Connection) -> int:
    """Delete every shape and property. Returns the number of shapes removed."""
    n = count_shapes(conn)
    with catalog_tx(conn):
        conn.execute("DELETE FROM shape_props")
        conn.execute("DELETE FROM shapes")
    logger.info("Cleared shape catalog (%d shapes)", n)
    return n


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def query_shapes(
    conn: sqlite3.Connection,
    classification: str = "",
    search: str = "",
    limit: int | None = DEFAULT_QUERY_LIMIT,
) -> list[ShapeRow]:
    """
    Filtered listing for the shape picker.

    - classification: exact match when non-empty
    - search: case-insensitive "contains" on label, alternate name or shape key
    - ordered by label, truncated to ``limit`` (None = no limit)
    """
    if limit is not None and int(limit) <= 0:
        return []

    sql = """
        SELECT s.id, s.shape_key, s.primary_label, s.alternate_name, s.classification,
               COALESCE((SELECT prop_value_num FROM shape_props
                         WHERE shape_id = s.id AND prop_key = ?), 0) AS weight_per_ft,
               COALESCE((SELECT prop_value_num FROM shape_props
                         WHERE shape_id = s.id AND prop_key = ?), 0) AS depth,
               COALESCE((SELECT prop_value_num FROM shape_props
                         WHERE shape_id = s.id AND prop_key = ?), 0) AS flange_width
        FROM shapes s
        WHERE 1 = 1
    """
    params: list[object] = [PROP_WEIGHT_PER_FT, PROP_DEPTH, PROP_FLANGE_WIDTH]

    classification = (classification or "").strip()
    if classification:
        sql += " AND s.classification = ?"
        params.append(classification)

    search = (search or "").strip()
    if search:
        pattern = f"%{_escape_like(search)}%"
        sql += (
            " AND (s.primary_label LIKE ? ESCAPE '\\'"
            " OR s.alternate_name LIKE ? ESCAPE '\\'"
            " OR s.shape_key LIKE ? ESCAPE '\\')"
        )
        params.extend([pattern, pattern, pattern])

    sql += " ORDER BY s.primary_label ASC, s.shape_key ASC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    rows = conn.execute(sql, params).fetchall()
    return [
        ShapeRow(
            id=int(r[0]),
            shape_key=str(r[1]),
            primary_label=str(r[2] or ""),
            alternate_name=str(r[3] or ""),
            classification=str(r[4] or ""),
            weight_per_ft=float(r[5] or 0.0),
            depth=float(r[6] or 0.0),
            flange_width=float(r[7] or 0.0),
        )
        for r in rows
    ]
