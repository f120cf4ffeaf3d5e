from __future__ import annotations

OTHER = "Other"

# Order matters: compound prefixes must be tested before the single-letter
# prefixes they start with.
_PREFIX_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("HSS", ()),
    ("PIPE", ()),
    ("2L", ()),
    ("WT", ()),
    ("MT", ()),
    ("ST", ()),
    ("HP", ()),
    ("MC", ()),
    ("W", ("WT", "WP")),
    ("M", ("MC", "MT")),
    ("S", ("ST",)),
    ("C", ()),
    ("L", ()),
)

SHAPE_CLASSIFICATIONS: tuple[str, ...] = tuple(prefix for prefix, _ in _PREFIX_RULES) + (OTHER,)


def classify(label: str | None) -> str:
    """
    Map a raw shape designation to its coarse category.

    W14X90 -> W, WT4X5 -> WT, HSS4X4X.25 -> HSS, MC8X20 -> MC, "" -> Other.
    """
    if not label:
        return OTHER
    upper = str(label).strip().upper()
    if not upper:
        return OTHER
    for prefix, excluded in _PREFIX_RULES:
        if not upper.startswith(prefix):
            continue
        if any(upper.startswith(ex) for ex in excluded):
            continue
        return prefix
    return OTHER
