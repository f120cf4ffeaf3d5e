from __future__ import annotations

import tempfile
from dataclasses import asdict
from pathlib import Path

import pandas as pd
import streamlit as st

from app import db
from takeoff_core.classification import SHAPE_CLASSIFICATIONS
from takeoff_core.shape_import import (
    CSV_SUFFIXES,
    SPREADSHEET_SUFFIXES,
    import_shapes_file,
)
from takeoff_core.shapes_catalog import (
    clear_shapes,
    count_shapes,
    get_shape,
    has_shapes,
    list_classifications,
    query_shapes,
)

SHAPE_COLUMNS = [
    "id",
    "primary_label",
    "alternate_name",
    "classification",
    "weight_per_ft",
    "depth",
    "flange_width",
    "shape_key",
]


def _render_import(conn, state: dict) -> None:
    st.subheader("Import shapes")
    st.caption(
        "AISC-style tables. The label column is found by name "
        "(AISC_Manual_Label / Label / Shape); column 0 is used otherwise."
    )
    uploaded = st.file_uploader(
        "Shape table (CSV or XLSX)",
        type=[s.lstrip(".") for s in CSV_SUFFIXES + SPREADSHEET_SUFFIXES],
    )
    strict = st.checkbox("Require a label column (strict)", value=False)
    if uploaded is None or not st.button("Import"):
        return

    suffix = Path(uploaded.name).suffix.lower()
    with tempfile.TemporaryDirectory() as tmp_dir:
        tmp_path = Path(tmp_dir) / f"upload{suffix}"
        tmp_path.write_bytes(uploaded.getvalue())
        report = import_shapes_file(conn, tmp_path, strict_label=strict)

    if not report.ok:
        st.error(f"Import failed: {report.error}")
        return
    db.update_state_after_write(state, state["db_path"], conn)
    if report.imported == 0:
        st.warning("Import ran but no rows had a label or alternate name.")
    else:
        st.success(f"Imported {report.imported} shapes from {uploaded.name}.")


def _render_clear(conn, state: dict) -> None:
    st.subheader("Clear catalog")
    confirm = st.checkbox("Delete all shapes and properties (DESTRUCTIVE)")
    if st.button("Clear shapes", disabled=not confirm):
        try:
            removed = clear_shapes(conn)
            db.update_state_after_write(state, state["db_path"], conn)
            st.success(f"Removed {removed} shapes.")
        except Exception as exc:  # pragma: no cover - UI error path
            st.error(f"Failed to clear shapes: {exc}")


def render(conn, state: dict) -> None:
    st.header("Shapes")

    if not has_shapes(conn):
        st.info("The shape catalog is empty. Import an AISC-style table in EDIT mode.")

    total = count_shapes(conn)
    present = set(list_classifications(conn))
    types = [""] + [c for c in SHAPE_CLASSIFICATIONS if c in present]
    cols = st.columns([1, 2, 1])
    with cols[0]:
        type_filter = st.selectbox(
            "Type", types, format_func=lambda t: t or "(all)", key="shape_type_filter"
        )
    with cols[1]:
        search = st.text_input("Search label / EDI name", key="shape_search")
    with cols[2]:
        limit = st.number_input("Limit", min_value=1, max_value=5000, value=100, step=50)

    rows = query_shapes(conn, type_filter, search, int(limit))
    st.caption(f"Showing {len(rows)} of {total} shapes")
    df = pd.DataFrame([asdict(r) for r in rows], columns=SHAPE_COLUMNS)
    st.dataframe(df, use_container_width=True, hide_index=True)

    if rows:
        options = {f"{r.primary_label or r.shape_key} (#{r.id})": r.id for r in rows}
        picked = st.selectbox("Properties of", list(options))
        shape = get_shape(conn, options[picked])
        if shape is not None:
            props = pd.DataFrame(
                [
                    {"property": k, "text": v.text, "number": v.number}
                    for k, v in sorted(shape.properties.items())
                ],
                columns=["property", "text", "number"],
            )
            with st.expander(f"{shape.shape_key}: {len(props)} properties"):
                st.dataframe(props, use_container_width=True, hide_index=True)

    if state.get("mode_effective") != "EDIT":
        st.info("Switch to EDIT mode to import or clear shapes.")
        return

    _render_import(conn, state)
    _render_clear(conn, state)
