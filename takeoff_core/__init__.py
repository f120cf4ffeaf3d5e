"""
takeoff_core: shape catalog and quote engine of the steel takeoff tool.

- shape catalog on SQLite (EAV properties), explicit connection everywhere
- import of AISC-style shape tables from CSV / spreadsheets
- prefix classification of shape designations
- grouping of takeoff records into priced quote lines

Drawing, PDF rendering and the project file store live outside this package.
"""

from .classification import classify
from .pricing import PricingConfig, load_pricing
from .quote_aggregation import (
    GROUP_BY_CLASSIFICATION,
    GROUP_BY_DESIGNATION,
    ItemCosting,
    QuoteLineGroup,
    QuoteSummary,
    cost_item,
    summarize_takeoff,
)
from .shape_import import ImportReport, ShapeImportError, import_shapes_file, import_table
from .shapes_catalog import (
    catalog_tx,
    clear_shapes,
    count_shapes,
    find_shape_by_designation,
    get_property,
    get_shape_label,
    list_classifications,
    query_shapes,
    upsert_property,
    upsert_shape,
)
from .takeoff_records import TakeoffRecord

__all__ = [
    "GROUP_BY_CLASSIFICATION",
    "GROUP_BY_DESIGNATION",
    "ImportReport",
    "ItemCosting",
    "PricingConfig",
    "QuoteLineGroup",
    "QuoteSummary",
    "ShapeImportError",
    "TakeoffRecord",
    "catalog_tx",
    "classify",
    "clear_shapes",
    "cost_item",
    "count_shapes",
    "find_shape_by_designation",
    "get_property",
    "get_shape_label",
    "import_shapes_file",
    "import_table",
    "list_classifications",
    "load_pricing",
    "query_shapes",
    "summarize_takeoff",
    "upsert_property",
    "upsert_shape",
]
