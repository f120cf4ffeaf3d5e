from __future__ import annotations

import pandas as pd
import streamlit as st

from app import db
from app.validation import validate_takeoff_rows
from takeoff_core.pricing import PricingConfig
from takeoff_core.quote_aggregation import cost_item
from takeoff_core.takeoff_records import KINDS, LABOR_CLASSES, MATERIAL_TYPES, record_from_mapping

INPUT_COLUMNS = [
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
    "notes",
]

DERIVED_COLUMNS = ["shape_label", "length_ft", "weight_lb", "cost"]


def _clean_rows(df: pd.DataFrame) -> list[dict]:
    out = df.copy()
    out = out.astype(object).where(out.notna(), None)
    return [row for row in out.to_dict(orient="records") if row.get("length_in") is not None]


def render(conn, state: dict) -> None:
    st.header("Takeoff items")

    items = db.list_takeoff_items(conn)
    df_full = pd.DataFrame(items, columns=INPUT_COLUMNS + ["shape_label"])
    df_full["length_ft"] = pd.to_numeric(df_full["length_in"], errors="coerce") / 12.0
    try:
        rates = db.get_pricing(conn)
    except ValueError:
        rates = PricingConfig()
    costings = [cost_item(record_from_mapping(item), rates, conn) for item in items]
    df_full["weight_lb"] = [c.weight_lb for c in costings]
    df_full["cost"] = [c.material_cost for c in costings]

    validation = validate_takeoff_rows(df_full[INPUT_COLUMNS])
    df_full["row_status"] = df_full.index.map(lambda i: validation.row_status.get(i, "OK"))

    if state.get("mode_effective") != "EDIT":
        st.dataframe(
            df_full[INPUT_COLUMNS + DERIVED_COLUMNS + ["row_status"]],
            use_container_width=True,
            hide_index=True,
        )
        if validation.warnings:
            st.caption("Warnings:\n" + "\n".join(validation.warnings))
        st.info("Switch to EDIT mode to edit takeoff items.")
        return

    st.caption(
        "Lengths are in inches. Weight uses the assigned shape's W and cost the $/lb rate "
        "from Quote; derived columns are read-only. A designation naming a catalog shape "
        "is assigned on save."
    )
    edited_df = st.data_editor(
        df_full[INPUT_COLUMNS + DERIVED_COLUMNS + ["row_status"]],
        num_rows="dynamic",
        disabled=DERIVED_COLUMNS + ["row_status", "id"],
        column_config={
            "kind": st.column_config.SelectboxColumn(options=list(KINDS)),
            "material_type": st.column_config.SelectboxColumn(options=list(MATERIAL_TYPES)),
            "labor_class": st.column_config.SelectboxColumn(options=list(LABOR_CLASSES)),
        },
        use_container_width=True,
        key="takeoff_editor",
    )

    input_df = edited_df[INPUT_COLUMNS].copy()
    edited_validation = validate_takeoff_rows(input_df)
    if edited_validation.warnings:
        st.warning("Warnings:\n" + "\n".join(edited_validation.warnings))
    if edited_validation.errors:
        st.error("Validation errors:\n" + "\n".join(edited_validation.errors))

    if st.button("Save takeoff items", disabled=edited_validation.has_errors):
        try:
            original_ids = {int(i) for i in df_full["id"].dropna()}
            kept_ids = {int(float(i)) for i in input_df["id"].dropna()}
            with db.tx(conn):
                db.delete_takeoff_items(conn, sorted(original_ids - kept_ids))
                saved = db.upsert_takeoff_items(conn, _clean_rows(input_df))
            db.update_state_after_write(state, state["db_path"], conn)
            st.success(f"Saved {saved} takeoff items.")
        except Exception as exc:  # pragma: no cover - UI error path
            st.error(f"Failed to save takeoff items: {exc}")
