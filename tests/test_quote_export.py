from __future__ import annotations

import csv
from pathlib import Path

import pytest

from takeoff_core.pricing import PricingConfig
from takeoff_core.quote_aggregation import (
    GROUP_BY_DESIGNATION,
    QuoteLineGroup,
    QuoteSummary,
    summarize_takeoff,
)
from takeoff_core.quote_export import (
    CLASSIFICATION_HEADER,
    DESIGNATION_HEADER,
    build_report_rows,
    summary_to_dataframe,
    write_report_csv,
)
from takeoff_core.takeoff_records import TakeoffRecord


def _classification_summary() -> QuoteSummary:
    records = [
        TakeoffRecord(id=1, length_inches=120.0, material_type="Tube", size="4x4"),
        TakeoffRecord(id=2, length_inches=30.0, material_type="Angle", size="2x2", labor_class="FieldWeld"),
    ]
    rates = PricingConfig(material_rate_per_ft=2.0, labor_rate_per_ft=1.0, markup_percent=10.0)
    return summarize_takeoff(records, rates)


def test_classification_report_layout() -> None:
    rows = build_report_rows(_classification_summary())

    assert rows[0] == CLASSIFICATION_HEADER
    assert rows[1] == [
        "Tube", "4x4", "ShopFab", "120.00", "10.00", "0.0", "1", "20.00", "10.00", "30.00",
    ]
    assert rows[2][:3] == ["Angle", "2x2", "FieldWeld"]
    assert rows[3] == []
    assert rows[4] == ["Rates:", "Material $/ft", "2.00"]
    assert rows[5] == ["", "Labor $/ft", "1.00"]
    assert rows[6] == ["", "Markup %", "10.00"]
    assert rows[7] == []
    assert rows[8] == ["Material:", "$25.00"]
    assert rows[9] == ["Labor:", "$12.50"]
    assert rows[10] == ["Subtotal:", "$37.50"]
    assert rows[11] == ["Total:", "$41.25"]
    assert rows[12] == ["Total Weight:", "0.0 lb"]


def test_designation_report_layout() -> None:
    line = QuoteLineGroup(
        designation="W14X90",
        total_length_in=180.0,
        total_length_ft=15.0,
        item_count=2,
        total_weight_lb=1350.0,
        material_cost=675.0,
        subtotal=675.0,
    )
    summary = QuoteSummary(
        mode=GROUP_BY_DESIGNATION,
        rates=PricingConfig(price_per_lb=0.5),
        lines=[line],
        total_material_cost=675.0,
        grand_subtotal=675.0,
        grand_total=675.0,
        total_weight_lb=1350.0,
    )
    rows = build_report_rows(summary)
    assert rows[0] == DESIGNATION_HEADER
    assert rows[1] == ["W14X90", "180.00", "15.00", "1350.0", "2", "675.00"]
    assert rows[3] == ["Rates:", "Material $/lb", "0.50"]
    labels = [r[0] for r in rows if r]
    assert "Labor:" not in labels
    assert rows[-1] == ["Total Weight:", "1350.0 lb"]


def test_write_report_csv_round_trips_through_csv_reader(tmp_path: Path) -> None:
    out = write_report_csv(tmp_path / "out" / "quote.csv", _classification_summary())
    assert out.exists()
    with out.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == CLASSIFICATION_HEADER
    assert ["Total:", "$41.25"] in rows


def test_summary_to_dataframe() -> None:
    df = summary_to_dataframe(_classification_summary())
    assert list(df["material_type"]) == ["Tube", "Angle"]
    assert df["subtotal"].sum() == pytest.approx(37.5)
