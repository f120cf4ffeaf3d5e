from __future__ import annotations

from pathlib import Path

import streamlit as st

from app import db
from app.validation import validate_pricing
from takeoff_core.pricing import PricingConfig
from takeoff_core.quote_aggregation import (
    GROUP_BY_CLASSIFICATION,
    GROUP_BY_DESIGNATION,
    summarize_takeoff,
)
from takeoff_core.quote_export import summary_to_dataframe, write_report_csv


def _rates_form(conn, state: dict, saved: PricingConfig, mode: str) -> PricingConfig:
    cols = st.columns(3)
    if mode == GROUP_BY_DESIGNATION:
        with cols[0]:
            price_per_lb = st.number_input(
                "Material $/lb", min_value=0.0, value=saved.price_per_lb, step=0.05
            )
        material_rate = saved.material_rate_per_ft
        labor_rate = saved.labor_rate_per_ft
    else:
        with cols[0]:
            material_rate = st.number_input(
                "Material $/ft", min_value=0.0, value=saved.material_rate_per_ft, step=0.5
            )
        with cols[1]:
            labor_rate = st.number_input(
                "Labor $/ft", min_value=0.0, value=saved.labor_rate_per_ft, step=0.5
            )
        price_per_lb = saved.price_per_lb
    with cols[2]:
        markup = st.number_input("Markup %", min_value=0.0, value=saved.markup_percent, step=1.0)

    data = {
        "material_rate_per_ft": material_rate,
        "labor_rate_per_ft": labor_rate,
        "markup_percent": markup,
        "price_per_lb": price_per_lb,
    }
    errors = validate_pricing(data)
    if errors:
        st.error("; ".join(errors))
        return saved
    rates = PricingConfig(**{k: float(v) for k, v in data.items()})

    if state.get("mode_effective") == "EDIT" and rates != saved:
        if st.button("Save rates to project"):
            try:
                with db.tx(conn):
                    db.save_pricing(conn, rates)
                db.update_state_after_write(state, state["db_path"], conn)
                st.success("Rates saved.")
            except Exception as exc:  # pragma: no cover - UI error path
                st.error(f"Failed to save rates: {exc}")
    return rates


def render(conn, state: dict) -> None:
    st.header("Quote")

    mode = st.radio(
        "Group by",
        [GROUP_BY_CLASSIFICATION, GROUP_BY_DESIGNATION],
        format_func=lambda m: "Material / size / labor" if m == GROUP_BY_CLASSIFICATION else "Designation",
        horizontal=True,
        key="grouping_mode",
    )

    try:
        saved = db.get_pricing(conn)
    except ValueError as exc:
        st.warning(f"Stored rates are invalid, using zeros: {exc}")
        saved = PricingConfig()
    rates = _rates_form(conn, state, saved, mode)

    pages = db.list_page_ids(conn)
    page_id = None
    if pages:
        picked = st.selectbox(
            "Pages", [""] + pages, format_func=lambda p: p or "(all pages)", key="quote_page_filter"
        )
        page_id = picked or None

    try:
        records = db.list_takeoff_records(conn, page_id)
    except ValueError as exc:
        st.error(f"Takeoff items are invalid: {exc}")
        return
    if not records:
        st.info("No takeoff items yet.")
        return

    summary = summarize_takeoff(records, rates, conn=conn, mode=mode)
    st.dataframe(summary_to_dataframe(summary), use_container_width=True, hide_index=True)

    cols = st.columns(4)
    cols[0].metric("Material", f"${summary.total_material_cost:,.2f}")
    cols[1].metric("Labor", f"${summary.total_labor_cost:,.2f}")
    cols[2].metric("Total", f"${summary.grand_total:,.2f}")
    cols[3].metric("Weight", f"{summary.total_weight_lb:,.1f} lb")

    st.subheader("Export CSV")
    out_path = st.text_input("Output path", value=str(Path("out") / "quote_summary.csv"))
    if st.button("Export quote summary"):
        try:
            written = write_report_csv(out_path, summary)
            st.success(f"Quote summary exported: {written}")
            st.download_button(
                "Download CSV",
                data=written.read_bytes(),
                file_name=written.name,
            )
        except Exception as exc:  # pragma: no cover - UI error path
            st.error(f"Export failed: {exc}")
