from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd

from .quote_aggregation import GROUP_BY_DESIGNATION, QuoteLineGroup, QuoteSummary

CLASSIFICATION_HEADER = [
    "Material Type",
    "Size",
    "Labor Class",
    "Total (in)",
    "Total (ft)",
    "Weight (lb)",
    "Item Count",
    "Material Cost",
    "Labor Cost",
    "Subtotal",
]

DESIGNATION_HEADER = [
    "Designation",
    "Total (in)",
    "Total (ft)",
    "Weight (lb)",
    "Item Count",
    "Material Cost",
]


def _fmt(value: float, decimals: int) -> str:
    text = f"{float(value):.{decimals}f}"
    if text.startswith("-") and float(text) == 0.0:
        return text[1:]
    return text


def report_header(summary: QuoteSummary) -> list[str]:
    if summary.mode == GROUP_BY_DESIGNATION:
        return list(DESIGNATION_HEADER)
    return list(CLASSIFICATION_HEADER)


def _line_row(mode: str, line: QuoteLineGroup) -> list[str]:
    lengths_weight = [
        _fmt(line.total_length_in, 2),
        _fmt(line.total_length_ft, 2),
        _fmt(line.total_weight_lb, 1),
        str(line.item_count),
    ]
    if mode == GROUP_BY_DESIGNATION:
        return [line.designation, *lengths_weight, _fmt(line.material_cost, 2)]
    return [
        line.material_type,
        line.size,
        line.labor_class,
        *lengths_weight,
        _fmt(line.material_cost, 2),
        _fmt(line.labor_cost, 2),
        _fmt(line.subtotal, 2),
    ]


def _rates_rows(summary: QuoteSummary) -> list[list[str]]:
    rates = summary.rates
    if summary.mode == GROUP_BY_DESIGNATION:
        return [
            ["Rates:", "Material $/lb", _fmt(rates.price_per_lb, 2)],
            ["", "Markup %", _fmt(rates.markup_percent, 2)],
        ]
    return [
        ["Rates:", "Material $/ft", _fmt(rates.material_rate_per_ft, 2)],
        ["", "Labor $/ft", _fmt(rates.labor_rate_per_ft, 2)],
        ["", "Markup %", _fmt(rates.markup_percent, 2)],
    ]


def build_report_rows(summary: QuoteSummary) -> list[list[str]]:
    """
    Delimited report: header, one row per group, blank row, rates block,
    blank row, totals block.
    """
    rows: list[list[str]] = [report_header(summary)]
    rows.extend(_line_row(summary.mode, line) for line in summary.lines)
    rows.append([])
    rows.extend(_rates_rows(summary))
    rows.append([])
    rows.append(["Material:", f"${_fmt(summary.total_material_cost, 2)}"])
    if summary.mode != GROUP_BY_DESIGNATION:
        rows.append(["Labor:", f"${_fmt(summary.total_labor_cost, 2)}"])
    rows.append(["Subtotal:", f"${_fmt(summary.grand_subtotal, 2)}"])
    rows.append(["Total:", f"${_fmt(summary.grand_total, 2)}"])
    rows.append(["Total Weight:", f"{_fmt(summary.total_weight_lb, 1)} lb"])
    return rows


def write_report_csv(path: str | Path, summary: QuoteSummary) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerows(build_report_rows(summary))
    return out_path


def summary_to_dataframe(summary: QuoteSummary) -> pd.DataFrame:
    """Group rows only (numbers unformatted), for on-screen tables."""
    if summary.mode == GROUP_BY_DESIGNATION:
        data = [
            {
                "designation": line.designation,
                "total_in": line.total_length_in,
                "total_ft": line.total_length_ft,
                "weight_lb": line.total_weight_lb,
                "item_count": line.item_count,
                "material_cost": line.material_cost,
            }
            for line in summary.lines
        ]
        columns = ["designation", "total_in", "total_ft", "weight_lb", "item_count", "material_cost"]
    else:
        data = [
            {
                "material_type": line.material_type,
                "size": line.size,
                "labor_class": line.labor_class,
                "total_in": line.total_length_in,
                "total_ft": line.total_length_ft,
                "weight_lb": line.total_weight_lb,
                "item_count": line.item_count,
                "material_cost": line.material_cost,
                "labor_cost": line.labor_cost,
                "subtotal": line.subtotal,
            }
            for line in summary.lines
        ]
        columns = [
            "material_type",
            "size",
            "labor_class",
            "total_in",
            "total_ft",
            "weight_lb",
            "item_count",
            "material_cost",
            "labor_cost",
            "subtotal",
        ]
    return pd.DataFrame(data, columns=columns)
