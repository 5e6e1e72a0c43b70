"""Best-effort SKU resolution across inconsistent upstream schemas.

Sources are tried in a fixed order and the first non-empty value wins:

    1. normalized data (``specifications_normalized.sku``)
    2. the candidate's own specs (``specs.sku``)
    3. raw provider payload, field names in ``RAW_SKU_FIELDS`` order

Extraction never raises; a missing SKU is logged and callers carry on
without one.
"""
from typing import Any, Callable, Mapping, Optional, Tuple

import structlog

from sourcing_matcher.models.matching import ProviderResult

logger = structlog.get_logger(__name__)

RAW_SKU_FIELDS: Tuple[str, ...] = (
    "productSku",
    "sku",
    "SKU",
    "product_sku",
    "productSkuNumber",
    "skuCode",
)


def coerce_sku(value: Any, allow_numeric: bool = False) -> Optional[str]:
    """Return a trimmed SKU string, or None for empty/unsupported values."""
    if isinstance(value, str):
        return value.strip() or None
    if allow_numeric and isinstance(value, (int, float)) and not isinstance(value, bool):
        if not value:
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip() or None
    return None


def _from_normalized(
    normalized: Optional[Mapping[str, Any]],
    specs: Optional[Mapping[str, Any]],
    raw_data: Optional[Mapping[str, Any]],
) -> Optional[str]:
    if not normalized:
        return None
    normalized_specs = normalized.get("specifications_normalized")
    if not isinstance(normalized_specs, Mapping):
        return None
    return coerce_sku(normalized_specs.get("sku"))


def _from_specs(
    normalized: Optional[Mapping[str, Any]],
    specs: Optional[Mapping[str, Any]],
    raw_data: Optional[Mapping[str, Any]],
) -> Optional[str]:
    if not specs:
        return None
    return coerce_sku(specs.get("sku"))


def _from_raw_data(
    normalized: Optional[Mapping[str, Any]],
    specs: Optional[Mapping[str, Any]],
    raw_data: Optional[Mapping[str, Any]],
) -> Optional[str]:
    if not raw_data:
        return None
    for field in RAW_SKU_FIELDS:
        sku = coerce_sku(raw_data.get(field), allow_numeric=True)
        if sku:
            return sku
    return None


SkuExtractor = Callable[
    [Optional[Mapping[str, Any]], Optional[Mapping[str, Any]], Optional[Mapping[str, Any]]],
    Optional[str],
]

# Priority is absolute: an earlier source wins over any later one.
SKU_EXTRACTORS: Tuple[Tuple[str, SkuExtractor], ...] = (
    ("normalized", _from_normalized),
    ("specs", _from_specs),
    ("raw_data", _from_raw_data),
)


def extract_sku(
    normalized: Optional[Mapping[str, Any]] = None,
    specs: Optional[Mapping[str, Any]] = None,
    raw_data: Optional[Mapping[str, Any]] = None,
    label: Optional[str] = None,
) -> Optional[str]:
    """Extract a SKU from normalized data, specs or raw provider data.

    Args:
        normalized: Normalized product data holding ``specifications_normalized``
        specs: Candidate specifications
        raw_data: Raw provider response payload
        label: Product name used only for logging

    Returns:
        The first non-empty SKU found, or None
    """
    for source, extractor in SKU_EXTRACTORS:
        sku = extractor(normalized, specs, raw_data)
        if sku:
            logger.debug("sku_extracted", source=source, sku=sku, product=label or "unknown")
            return sku

    if label:
        logger.warning("sku_not_found", product=label)
    return None


def extract_sku_from_result(result: ProviderResult) -> Optional[str]:
    """Extract a SKU from a candidate's specs and raw data."""
    return extract_sku(
        specs=result.specs,
        raw_data=result.raw_data,
        label=result.title,
    )
