"""Interpretation of free-form spreadsheet rows.

Rows arrive as flat ``{column header: value}`` maps whose headers are chosen
by whoever built the sheet. This module turns one row into a ``ProductQuery``
using ordered, case-insensitive column lookups.
"""
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from sourcing_matcher.errors import NameResolutionError
from sourcing_matcher.models.jobs import RowData
from sourcing_matcher.models.matching import ProductQuery

NAME_COLUMNS: Tuple[str, ...] = (
    "name",
    "productname",
    "product name",
    "product_name",
    "title",
    "product title",
    "producttitle",
    "product_title",
    "item",
    "item name",
    "itemname",
    "item_name",
    "product",
    "product description",
    "productdescription",
)

SPEC_COLUMNS: Tuple[str, ...] = (
    "specs",
    "specifications",
    "dimensions",
    "weight",
    "material",
    "color",
    "size",
)

# Column names containing any of these never hold the product name
NON_NAME_MARKERS: Tuple[str, ...] = ("id", "sku", "price", "quantity", "stock")

_NUMERIC_ONLY = re.compile(r"^[\d.,]+$")
_URL = re.compile(r"^https?://")


def _lowered(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Row keyed by lower-cased header; the first header wins on collisions."""
    lowered: Dict[str, Any] = {}
    for key, value in row.items():
        lowered.setdefault(str(key).lower(), value)
    return lowered


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _looks_like_name(column: str, value: str) -> bool:
    column = column.lower()
    return (
        len(value) > 2
        and not _NUMERIC_ONLY.match(value)
        and not _URL.match(value)
        and not any(marker in column for marker in NON_NAME_MARKERS)
    )


def extract_product_name(row: RowData) -> str:
    """Product name from a known name column, else the first name-like value.

    Returns an empty string when nothing qualifies.
    """
    lowered = _lowered(row)
    for column in NAME_COLUMNS:
        value = _text(lowered.get(column))
        if value:
            return value

    for column, raw_value in row.items():
        value = _text(raw_value)
        if _looks_like_name(str(column), value):
            return value

    return ""


def extract_description(row: RowData) -> Optional[str]:
    return _text(_lowered(row).get("description")) or None


def extract_price(row: RowData) -> Optional[float]:
    """Positive price from a ``price`` column; numeric strings are parsed."""
    value = _lowered(row).get("price")
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        match = re.match(r"^\s*([+-]?\d+(?:\.\d+)?)", str(value))
        if not match:
            return None
        price = float(match.group(1))
    return price if price > 0 else None


def extract_specs(row: RowData) -> Optional[Dict[str, str]]:
    lowered = _lowered(row)
    specs = {
        column: _text(lowered[column])
        for column in SPEC_COLUMNS
        if _text(lowered.get(column))
    }
    return specs or None


def build_product_query(row: RowData) -> ProductQuery:
    """Build the query for one row.

    Raises:
        NameResolutionError: When no usable product name exists in the row
    """
    name = extract_product_name(row)
    columns = [str(column) for column in row.keys()]
    if not name:
        raise NameResolutionError(
            f"Product name not found. Available columns: {', '.join(columns)}",
            columns=columns,
        )

    try:
        return ProductQuery(
            name=name,
            description=extract_description(row),
            price=extract_price(row),
            specs=extract_specs(row),
        )
    except ValidationError as e:
        raise NameResolutionError(
            f"Invalid product row: {e.errors()[0]['msg']}",
            columns=columns,
        ) from e
