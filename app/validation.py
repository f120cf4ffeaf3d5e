from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import pandas as pd

from takeoff_core.pricing import PRICING_KEYS
from takeoff_core.takeoff_records import KINDS, LABOR_CLASSES, MATERIAL_TYPES

_MESSAGES = {
    "length_required": "length_in is required",
    "length_gte_zero": "length_in must be a finite number >= 0",
    "qty_integer": "qty must be integer > 0",
    "kind": "kind must be Line or Polyline",
    "material_type": "material_type must be one of " + ", ".join(MATERIAL_TYPES),
    "labor_class": "labor_class must be one of " + ", ".join(LABOR_CLASSES),
    "shape_id_integer": "shape_id must be an integer when provided",
    "no_shape": "no catalog shape assigned (weight counts as 0 lb)",
    "no_size": "size is empty",
    "rate_gte_zero": "{field} must be a finite number >= 0",
}


def _msg(key: str, **kwargs: Any) -> str:
    raw = _MESSAGES.get(key, key)
    return raw.format(**kwargs) if kwargs else raw


@dataclass(frozen=True)
class ValidationResult:
    errors: list[str]
    warnings: list[str]
    row_status: dict[int, str]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def is_finite(value: Any) -> bool:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(num)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def validate_pricing(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    for field in PRICING_KEYS:
        val = data.get(field)
        if _is_blank(val):
            continue
        if isinstance(val, bool) or not is_finite(val) or float(val) < 0:
            errors.append(_msg("rate_gte_zero", field=field))
    return errors


def validate_takeoff_rows(df: pd.DataFrame) -> ValidationResult:
    """
    Validates takeoff items before they reach the quote engine.

    Expects DataFrame with columns:
    id, page_id, kind, length_in, qty, shape_id, designation, size,
    material_type, labor_class
    """
    errors: list[str] = []
    warnings: list[str] = []
    statuses: dict[int, str] = {}

    for idx, row in df.iterrows():
        row_errors: list[str] = []
        row_warnings: list[str] = []

        item_id = row.get("id")
        label = f"item {int(float(item_id))}" if is_finite(item_id) else f"row#{idx}"

        length = row.get("length_in")
        if _is_blank(length):
            row_errors.append(_msg("length_required"))
        elif not is_finite(length) or float(length) < 0:
            row_errors.append(_msg("length_gte_zero"))

        qty = row.get("qty")
        if not _is_blank(qty):
            try:
                qty_float = float(qty)
                if not qty_float.is_integer() or int(qty_float) <= 0:
                    row_errors.append(_msg("qty_integer"))
            except (TypeError, ValueError):
                row_errors.append(_msg("qty_integer"))

        kind = row.get("kind")
        if not _is_blank(kind) and str(kind).strip() not in KINDS:
            row_errors.append(_msg("kind"))

        material = row.get("material_type")
        if not _is_blank(material) and str(material).strip() not in MATERIAL_TYPES:
            row_errors.append(_msg("material_type"))

        labor = row.get("labor_class")
        if not _is_blank(labor) and str(labor).strip() not in LABOR_CLASSES:
            row_errors.append(_msg("labor_class"))

        shape_id = row.get("shape_id")
        if _is_blank(shape_id):
            row_warnings.append(_msg("no_shape"))
        elif not is_finite(shape_id) or not float(shape_id).is_integer():
            row_errors.append(_msg("shape_id_integer"))
        elif float(shape_id) < 0:
            row_warnings.append(_msg("no_shape"))

        if _is_blank(row.get("size")):
            row_warnings.append(_msg("no_size"))

        if row_errors:
            errors.append(f"{label}: " + "; ".join(row_errors))
            statuses[idx] = "INVALID"
        else:
            statuses[idx] = "OK"

        if row_warnings:
            warnings.append(f"{label}: " + "; ".join(row_warnings))

    return ValidationResult(errors=errors, warnings=warnings, row_status=statuses)
