from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

PRICING_KEYS = ("material_rate_per_ft", "labor_rate_per_ft", "markup_percent", "price_per_lb")


@dataclass(frozen=True)
class PricingConfig:
    material_rate_per_ft: float = 0.0
    labor_rate_per_ft: float = 0.0
    markup_percent: float = 0.0
    price_per_lb: float = 0.0

    @property
    def markup_factor(self) -> float:
        return 1.0 + self.markup_percent / 100.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def _coerce_rate(value: object, key: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number")
    try:
        num = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number") from exc
    if not math.isfinite(num):
        raise ValueError(f"{key} must be finite")
    if num < 0:
        raise ValueError(f"{key} must be >= 0")
    return num


def pricing_from_dict(data: dict[str, Any] | None) -> PricingConfig:
    if data is None:
        return PricingConfig()
    if not isinstance(data, dict):
        raise ValueError("pricing must be a mapping")
    unknown = sorted(set(data) - set(PRICING_KEYS))
    if unknown:
        raise ValueError(f"Unknown pricing keys: {', '.join(unknown)}")
    values = {
        key: _coerce_rate(data[key], key)
        for key in PRICING_KEYS
        if data.get(key) is not None
    }
    return PricingConfig(**values)


def load_pricing(path: str | Path) -> PricingConfig:
    """
    Read rates from YAML, e.g.

        material_rate_per_ft: 2.0
        labor_rate_per_ft: 1.0
        markup_percent: 10
        price_per_lb: 0.85

    A top-level ``pricing:`` section is accepted as well.
    """
    pricing_path = Path(path)
    try:
        data = yaml.safe_load(pricing_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid pricing YAML {pricing_path}: {exc}") from exc
    if isinstance(data, dict) and isinstance(data.get("pricing"), dict):
        data = data["pricing"]
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"Pricing root must be a mapping: {pricing_path}")
    return pricing_from_dict(data)
