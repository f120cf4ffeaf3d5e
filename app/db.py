from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import quote

from takeoff_core.pricing import PRICING_KEYS, PricingConfig, pricing_from_dict
from takeoff_core.shapes_catalog import catalog_tx, find_shape_by_designation
from takeoff_core.takeoff_records import (
    TakeoffRecord,
    kind_from_string,
    labor_class_from_string,
    material_type_from_string,
    record_from_mapping,
)

ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = ROOT / "db" / "migrations"

PRICING_SETTING_PREFIX = "pricing."

# Same semantics as the catalog batch: BEGIN / commit / rollback-and-reraise.
tx = catalog_tx


def _db_uri(db_path: str | Path, read_only: bool) -> str:
    db_abs = Path(db_path).resolve()
    if not read_only:
        return str(db_abs)
    return f"file:{quote(str(db_abs), safe='/')}?mode=ro"


def connect(db_path: str | Path, *, read_only: bool = False) -> sqlite3.Connection:
    if str(db_path) == ":memory:":
        conn = sqlite3.connect(":memory:")
    else:
        db_uri = _db_uri(db_path, read_only)
        conn = sqlite3.connect(db_uri, uri=read_only)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def ensure_migrations(conn: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending db/migrations/*.sql in name order; returns applied versions."""
    migration_files = sorted(Path(migrations_dir).glob("*.sql"))
    if not migration_files:
        raise RuntimeError(f"No migrations found in {migrations_dir}")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version TEXT PRIMARY KEY,
          applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """
    )
    conn.commit()
    applied = {
        str(row[0]) for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }

    newly_applied: list[str] = []
    for mf in migration_files:
        version = mf.stem
        if version in applied:
            continue
        conn.executescript(mf.read_text(encoding="utf-8"))
        with tx(conn):
            conn.execute("INSERT INTO schema_migrations (version) VALUES (?)", (version,))
        newly_applied.append(version)
    return newly_applied


def open_project_db(db_path: str | Path) -> sqlite3.Connection:
    """Open (creating if needed) a writable DB with all migrations applied."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path, read_only=False)
    try:
        ensure_migrations(conn)
    except Exception:
        conn.close()
        raise
    return conn


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return row is not None


def list_tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {str(r[0]) for r in rows}


def schema_status(conn: sqlite3.Connection) -> dict[str, Any]:
    tables = list_tables(conn)
    required = {"shapes", "shape_props", "takeoff_items", "project_settings"}
    missing = sorted(required - tables)

    required_columns: dict[str, set[str]] = {
        "shapes": {"id", "shape_key", "primary_label", "alternate_name", "classification"},
        "shape_props": {"shape_id", "prop_key", "prop_value", "prop_value_num"},
        "takeoff_items": {
            "id",
            "page_id",
            "kind",
            "length_in",
            "qty",
            "shape_id",
            "designation",
            "size",
            "material_type",
            "labor_class",
        },
    }
    missing_columns: dict[str, list[str]] = {}
    for table, cols in required_columns.items():
        if table not in tables:
            continue
        actual = {str(r[1]) for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}
        missing_for_table = sorted(cols - actual)
        if missing_for_table:
            missing_columns[table] = missing_for_table

    has_migrations = "schema_migrations" in tables
    migrations: list[str] = []
    if has_migrations:
        migrations = [
            str(r[0]) for r in conn.execute("SELECT version FROM schema_migrations ORDER BY version")
        ]
    return {
        "missing_tables": missing,
        "missing_columns": missing_columns,
        "has_migrations": has_migrations,
        "migrations": migrations,
    }


def get_data_version(conn: sqlite3.Connection) -> int:
    return int(conn.execute("PRAGMA data_version").fetchone()[0])


def get_db_mtime(db_path: str | Path) -> float | None:
    try:
        return Path(db_path).stat().st_mtime
    except FileNotFoundError:
        return None


def update_state_after_write(
    state: dict[str, Any], db_path: str | Path, conn: sqlite3.Connection | None = None
) -> None:
    close_conn = False
    if conn is None:
        conn = connect(db_path, read_only=False)
        close_conn = True
    try:
        state["data_version"] = get_data_version(conn)
        state["db_mtime"] = get_db_mtime(db_path)
        state["external_change"] = False
        state["last_write_at"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
    finally:
        if close_conn:
            conn.close()


def count_table(conn: sqlite3.Connection, table: str, where: str = "", params: tuple[Any, ...] = ()) -> int:
    sql = f"SELECT COUNT(*) FROM {table}"
    if where:
        sql += f" WHERE {where}"
    return int(conn.execute(sql, params).fetchone()[0])


def project_counts(conn: sqlite3.Connection) -> dict[str, int]:
    return {
        "shapes": count_table(conn, "shapes"),
        "shape_props": count_table(conn, "shape_props"),
        "takeoff_items": count_table(conn, "takeoff_items"),
    }


# --- takeoff items (project store) ---------------------------------------


def list_takeoff_items(conn: sqlite3.Connection, page_id: str | None = None) -> list[dict[str, Any]]:
    sql = """
        SELECT t.id, t.page_id, t.kind, t.length_in, t.qty, t.shape_id,
               t.designation, t.size, t.material_type, t.labor_class, t.notes,
               s.primary_label AS shape_label
        FROM takeoff_items t
        LEFT JOIN shapes s ON s.id = t.shape_id
    """
    params: tuple[Any, ...] = ()
    if page_id is not None:
        sql += " WHERE t.page_id = ?"
        params = (page_id,)
    sql += " ORDER BY t.id ASC"
    return [dict(r) for r in conn.execute(sql, params).fetchall()]


def list_takeoff_records(conn: sqlite3.Connection, page_id: str | None = None) -> list[TakeoffRecord]:
    return [record_from_mapping(row) for row in list_takeoff_items(conn, page_id)]


def list_page_ids(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT page_id FROM takeoff_items
        WHERE page_id IS NOT NULL AND page_id <> ''
        ORDER BY page_id ASC
        """
    ).fetchall()
    return [str(r[0]) for r in rows]


def _item_params(conn: sqlite3.Connection, data: dict[str, Any]) -> tuple[Any, ...]:
    shape_id = data.get("shape_id")
    if shape_id in ("", None) or str(shape_id).lower() == "nan" or int(float(shape_id)) < 0:
        shape_id = None
    designation = str(data.get("designation") or "").strip()
    if shape_id is None and designation:
        # Unassigned item: pick up the catalog shape named by its designation.
        shape_id = find_shape_by_designation(conn, designation)
    return (
        data.get("page_id") or None,
        kind_from_string(data.get("kind")),
        float(data["length_in"]),
        int(data.get("qty") or 1),
        int(float(shape_id)) if shape_id is not None else None,
        designation,
        str(data.get("size") or "").strip(),
        material_type_from_string(data.get("material_type")),
        labor_class_from_string(data.get("labor_class")),
        str(data.get("notes") or ""),
    )


def insert_takeoff_item(conn: sqlite3.Connection, data: dict[str, Any]) -> int:
    cur = conn.execute(
        """
        INSERT INTO takeoff_items (
          page_id, kind, length_in, qty, shape_id,
          designation, size, material_type, labor_class, notes
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        _item_params(conn, data),
    )
    return int(cur.lastrowid)


def update_takeoff_item(conn: sqlite3.Connection, item_id: int, data: dict[str, Any]) -> None:
    conn.execute(
        """
        UPDATE takeoff_items
        SET page_id = ?, kind = ?, length_in = ?, qty = ?, shape_id = ?,
            designation = ?, size = ?, material_type = ?, labor_class = ?, notes = ?
        WHERE id = ?
        """,
        (*_item_params(conn, data), int(item_id)),
    )


def upsert_takeoff_items(conn: sqlite3.Connection, rows: list[dict[str, Any]]) -> int:
    n = 0
    for row in rows:
        item_id = row.get("id")
        if item_id in (None, "") or str(item_id).lower() == "nan":
            insert_takeoff_item(conn, row)
        else:
            update_takeoff_item(conn, int(float(item_id)), row)
        n += 1
    return n


def delete_takeoff_items(conn: sqlite3.Connection, item_ids: Iterable[int]) -> int:
    ids = [int(i) for i in item_ids if i is not None]
    if not ids:
        return 0
    conn.execute(
        f"DELETE FROM takeoff_items WHERE id IN ({','.join(['?'] * len(ids))})",
        ids,
    )
    return len(ids)


# --- project settings -----------------------------------------------------


def get_setting(conn: sqlite3.Connection, key: str) -> str | None:
    if not table_exists(conn, "project_settings"):
        return None
    row = conn.execute("SELECT value FROM project_settings WHERE key = ?", (key,)).fetchone()
    return str(row[0]) if row and row[0] is not None else None


def set_setting(conn: sqlite3.Connection, key: str, value: str | None) -> None:
    conn.execute(
        """
        INSERT INTO project_settings (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )


def get_pricing(conn: sqlite3.Connection) -> PricingConfig:
    data: dict[str, Any] = {}
    for key in PRICING_KEYS:
        raw = get_setting(conn, PRICING_SETTING_PREFIX + key)
        if raw is not None and raw != "":
            data[key] = raw
    return pricing_from_dict(data)


def save_pricing(conn: sqlite3.Connection, pricing: PricingConfig) -> None:
    for key, value in pricing.to_dict().items():
        set_setting(conn, PRICING_SETTING_PREFIX + key, repr(float(value)))
