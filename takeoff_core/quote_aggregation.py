from __future__ import annotations

"""
Quote aggregation.

Two grouping modes, chosen explicitly by the caller:

- GROUP_BY_CLASSIFICATION: key = (material_type, size, labor_class).
  Each record counts once at its measured length (quantity ignored).
  material = ft * material_rate_per_ft, labor = ft * labor_rate_per_ft.
- GROUP_BY_DESIGNATION: key = designation ("(Unassigned)" when empty).
  Each record counts ``quantity`` times.
  material = lb * price_per_lb, labor = 0.

Weight is resolved per shape inside a group: a bucket may hold several
shapes with different weights per foot. Missing catalog data weighs 0 lb.

All sums go through math.fsum, so the result does not depend on record order.
Records are not validated here (length >= 0 and quantity > 0 are the
caller's contract).
"""

import math
import sqlite3
from dataclasses import dataclass, field
from typing import Iterable

from .pricing import PricingConfig
from .shapes_catalog import PROP_WEIGHT_PER_FT, get_property
from .takeoff_records import LABOR_CLASSES, MATERIAL_TYPES, TakeoffRecord

GROUP_BY_CLASSIFICATION = "CLASSIFICATION"
GROUP_BY_DESIGNATION = "DESIGNATION"
GROUPING_MODES = (GROUP_BY_CLASSIFICATION, GROUP_BY_DESIGNATION)

UNASSIGNED = "(Unassigned)"

INCHES_PER_FOOT = 12.0


@dataclass
class QuoteLineGroup:
    material_type: str = ""
    size: str = ""
    labor_class: str = ""
    designation: str = ""

    total_length_in: float = 0.0
    total_length_ft: float = 0.0
    item_count: int = 0
    total_weight_lb: float = 0.0

    material_cost: float = 0.0
    labor_cost: float = 0.0
    subtotal: float = 0.0


@dataclass
class QuoteSummary:
    mode: str
    rates: PricingConfig
    lines: list[QuoteLineGroup] = field(default_factory=list)

    total_material_cost: float = 0.0
    total_labor_cost: float = 0.0
    grand_subtotal: float = 0.0
    grand_total: float = 0.0
    total_weight_lb: float = 0.0

    @property
    def total_length_ft(self) -> float:
        return math.fsum(line.total_length_ft for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.item_count for line in self.lines)


@dataclass
class _Bucket:
    line: QuoteLineGroup
    lengths_in: list[float] = field(default_factory=list)
    shape_lengths_in: dict[int, list[float]] = field(default_factory=dict)


def _normalize_mode(mode: str) -> str:
    if not isinstance(mode, str):
        raise TypeError("mode must be a string")
    mode_norm = mode.strip().upper()
    if mode_norm not in GROUPING_MODES:
        raise ValueError(f"mode must be one of {', '.join(GROUPING_MODES)}")
    return mode_norm


def _designation_key(record: TakeoffRecord) -> str:
    return (record.designation or "").strip() or UNASSIGNED


def _classification_key(record: TakeoffRecord) -> tuple[str, str, str]:
    return (record.material_type, record.size, record.labor_class)


def _enum_pos(values: tuple[str, ...], value: str) -> int:
    return values.index(value) if value in values else len(values)


def _sort_key(mode: str, line: QuoteLineGroup) -> tuple:
    if mode == GROUP_BY_DESIGNATION:
        return (line.designation == UNASSIGNED, line.designation)
    return (
        _enum_pos(MATERIAL_TYPES, line.material_type),
        line.material_type,
        line.size,
        _enum_pos(LABOR_CLASSES, line.labor_class),
        line.labor_class,
    )


def _bucket_records(mode: str, records: Iterable[TakeoffRecord]) -> dict[object, _Bucket]:
    buckets: dict[object, _Bucket] = {}
    for rec in records:
        if mode == GROUP_BY_DESIGNATION:
            key: object = _designation_key(rec)
            length_in = rec.length_inches * rec.quantity
            count = rec.quantity
        else:
            key = _classification_key(rec)
            length_in = rec.length_inches
            count = 1

        bucket = buckets.get(key)
        if bucket is None:
            if mode == GROUP_BY_DESIGNATION:
                line = QuoteLineGroup(designation=str(key))
            else:
                line = QuoteLineGroup(
                    material_type=rec.material_type,
                    size=rec.size,
                    labor_class=rec.labor_class,
                )
            bucket = _Bucket(line=line)
            buckets[key] = bucket

        bucket.lengths_in.append(length_in)
        bucket.line.item_count += count
        if rec.has_shape:
            bucket.shape_lengths_in.setdefault(int(rec.shape_id), []).append(length_in)
    return buckets


def _group_weight(bucket: _Bucket, conn: sqlite3.Connection | None) -> float:
    if conn is None:
        return 0.0
    terms = []
    for shape_id in sorted(bucket.shape_lengths_in):
        feet = math.fsum(bucket.shape_lengths_in[shape_id]) / INCHES_PER_FOOT
        terms.append(feet * get_property(conn, shape_id, PROP_WEIGHT_PER_FT))
    return math.fsum(terms)


def summarize_takeoff(
    records: Iterable[TakeoffRecord],
    rates: PricingConfig,
    *,
    conn: sqlite3.Connection | None = None,
    mode: str = GROUP_BY_CLASSIFICATION,
) -> QuoteSummary:
    """
    Group takeoff records into priced quote lines.

    ``conn`` is the shape catalog used for weight lookups; without it every
    group weighs 0 lb.
    """
    mode_norm = _normalize_mode(mode)
    buckets = _bucket_records(mode_norm, records)

    lines: list[QuoteLineGroup] = []
    for bucket in buckets.values():
        line = bucket.line
        line.total_length_in = math.fsum(bucket.lengths_in)
        line.total_length_ft = line.total_length_in / INCHES_PER_FOOT
        line.total_weight_lb = _group_weight(bucket, conn)

        if mode_norm == GROUP_BY_DESIGNATION:
            line.material_cost = line.total_weight_lb * rates.price_per_lb
            line.labor_cost = 0.0
        else:
            line.material_cost = line.total_length_ft * rates.material_rate_per_ft
            line.labor_cost = line.total_length_ft * rates.labor_rate_per_ft
        line.subtotal = line.material_cost + line.labor_cost
        lines.append(line)

    lines.sort(key=lambda item: _sort_key(mode_norm, item))

    summary = QuoteSummary(mode=mode_norm, rates=rates, lines=lines)
    summary.total_material_cost = math.fsum(line.material_cost for line in lines)
    summary.total_labor_cost = math.fsum(line.labor_cost for line in lines)
    summary.grand_subtotal = summary.total_material_cost + summary.total_labor_cost
    summary.grand_total = summary.grand_subtotal * rates.markup_factor
    summary.total_weight_lb = math.fsum(line.total_weight_lb for line in lines)
    return summary


@dataclass(frozen=True)
class ItemCosting:
    """Figures for a single takeoff item (detail view)."""

    total_length_ft: float
    weight_per_ft: float
    weight_lb: float
    material_cost: float


def cost_item(
    record: TakeoffRecord, rates: PricingConfig, conn: sqlite3.Connection | None = None
) -> ItemCosting:
    """Length x quantity, weighed at the assigned shape's W and priced per lb."""
    total_ft = record.total_length_inches / INCHES_PER_FOOT
    w = get_property(conn, record.shape_id, PROP_WEIGHT_PER_FT) if record.has_shape else 0.0
    weight = total_ft * w
    return ItemCosting(
        total_length_ft=total_ft,
        weight_per_ft=w,
        weight_lb=weight,
        material_cost=weight * rates.price_per_lb,
    )
