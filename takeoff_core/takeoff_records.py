from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

KIND_LINE = "Line"
KIND_POLYLINE = "Polyline"
KINDS = (KIND_LINE, KIND_POLYLINE)

MATERIAL_TYPES = ("Tube", "Angle", "Channel", "FlatBar", "Plate", "Other")
LABOR_CLASSES = ("ShopFab", "FieldInstall", "FieldWeld")

DEFAULT_MATERIAL_TYPE = "Other"
DEFAULT_LABOR_CLASS = "ShopFab"


def material_type_from_string(value: object) -> str:
    text = str(value or "").strip()
    return text if text in MATERIAL_TYPES else DEFAULT_MATERIAL_TYPE


def labor_class_from_string(value: object) -> str:
    text = str(value or "").strip()
    return text if text in LABOR_CLASSES else DEFAULT_LABOR_CLASS


def kind_from_string(value: object) -> str:
    return KIND_POLYLINE if str(value or "").strip() == KIND_POLYLINE else KIND_LINE


@dataclass(frozen=True)
class TakeoffRecord:
    """
    One measured run handed over by the project store.

    The geometry is already reduced to ``length_inches``; ``page_id`` is
    carried through untouched. A negative or missing ``shape_id`` means no
    catalog shape is assigned.
    """

    id: int
    length_inches: float
    quantity: int = 1
    kind: str = KIND_LINE
    page_id: str | None = None
    shape_id: int | None = None
    designation: str = ""
    size: str = ""
    material_type: str = DEFAULT_MATERIAL_TYPE
    labor_class: str = DEFAULT_LABOR_CLASS
    notes: str = ""

    @property
    def length_feet(self) -> float:
        return self.length_inches / 12.0

    @property
    def total_length_inches(self) -> float:
        return self.length_inches * self.quantity

    @property
    def has_shape(self) -> bool:
        return self.shape_id is not None and self.shape_id >= 0


def _opt_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def record_from_mapping(data: Mapping[str, Any]) -> TakeoffRecord:
    """
    Build a record from a DB row / CSV dict.

    Accepts both the column names of ``takeoff_items`` (length_in, qty) and
    the attribute names (length_inches, quantity).
    """
    length = data.get("length_in", data.get("length_inches"))
    qty = data.get("qty", data.get("quantity"))
    if length is None or str(length).strip() == "":
        raise ValueError(f"length is required (id={data.get('id')})")
    try:
        length_val = float(length)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"length is not a number (id={data.get('id')})") from exc
    qty_val = _opt_int(qty)
    return TakeoffRecord(
        id=_opt_int(data.get("id")) or 0,
        length_inches=length_val,
        quantity=qty_val if qty_val is not None else 1,
        kind=kind_from_string(data.get("kind")),
        page_id=str(data["page_id"]) if data.get("page_id") else None,
        shape_id=_opt_int(data.get("shape_id")),
        designation=str(data.get("designation") or "").strip(),
        size=str(data.get("size") or "").strip(),
        material_type=material_type_from_string(data.get("material_type")),
        labor_class=labor_class_from_string(data.get("labor_class")),
        notes=str(data.get("notes") or ""),
    )
