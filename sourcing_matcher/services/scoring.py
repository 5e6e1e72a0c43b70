"""Composite ranking and data-reliability scores for candidates."""
import re
from types import MappingProxyType
from typing import Any, Mapping, Optional

from sourcing_matcher.models.matching import Confidence, ProductQuery, ProviderResult
from sourcing_matcher.services.matching.matcher import round_half_up

MATCH_WEIGHT = 0.4
COST_WEIGHT = 0.2
ETA_WEIGHT = 0.15
RELIABILITY_WEIGHT = 0.15
STOCK_WEIGHT = 0.1

NEUTRAL_SCORE = 0.5
BASE_RELIABILITY = 50

PROVIDER_TRUST: Mapping[str, int] = MappingProxyType({
    "catalog": 20,
    "cj": 20,
    "web": 10,
})

CONFIDENCE_POINTS: Mapping[Confidence, int] = MappingProxyType({
    Confidence.HIGH: 5,
    Confidence.MEDIUM: 3,
    Confidence.LOW: 1,
})

SPEC_STOCK_FIELDS = ("warehouse_inventory", "stock", "inventory")
RAW_STOCK_FIELDS = ("warehouseInventoryNum", "stock", "inventory")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _first_truthy(data: Mapping[str, Any], fields) -> Any:
    for field in fields:
        value = data.get(field)
        if value:
            return value
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def find_stock_level(candidate: ProviderResult) -> Optional[float]:
    """Inventory count from specs (number or numeric string), then raw data."""
    if candidate.specs:
        value = _first_truthy(candidate.specs, SPEC_STOCK_FIELDS)
        if _is_number(value):
            return value
        if isinstance(value, str):
            match = _LEADING_INT.match(value)
            if match:
                return int(match.group(1))

    if candidate.raw_data:
        value = _first_truthy(candidate.raw_data, RAW_STOCK_FIELDS)
        if _is_number(value):
            return value

    return None


def calculate_stock_score(candidate: ProviderResult) -> float:
    stock = find_stock_level(candidate)
    if stock is None:
        return NEUTRAL_SCORE
    if stock > 100:
        return 1.0
    if stock > 50:
        return 0.8
    if stock > 10:
        return 0.6
    return 0.3


def calculate_cost_score(candidate: ProviderResult, query: ProductQuery) -> float:
    """1.0 at or under the original price, decaying by half the excess ratio."""
    if candidate.landed_cost is None or not query.price:
        return NEUTRAL_SCORE
    ratio = candidate.landed_cost.total_landed_cost_usd / query.price
    if ratio <= 1:
        return 1.0
    return max(0.0, 1 - (ratio - 1) * 0.5)


def calculate_eta_score(candidate: ProviderResult) -> float:
    eta_days = candidate.landed_cost.eta_days if candidate.landed_cost else None
    if not eta_days:
        return NEUTRAL_SCORE
    if eta_days > 30:
        return 0.4
    if eta_days > 20:
        return 0.6
    if eta_days > 10:
        return 0.8
    return 1.0


def calculate_reliability_score(candidate: ProviderResult) -> int:
    """Data-quality and provider-trust score (0-100).

    Starts from a base of 50, adds provider trust, completeness bonuses for
    SKU, specs, images and a meaningful description, then the landed-cost
    and ETA confidence points.
    """
    score = BASE_RELIABILITY
    score += PROVIDER_TRUST.get(candidate.provider_id, 0)

    if candidate.sku:
        score += 10
    if candidate.specs:
        score += 5
    if candidate.images:
        score += 5
    if candidate.description and len(candidate.description) > 50:
        score += 5

    if candidate.landed_cost is not None:
        score += CONFIDENCE_POINTS[candidate.landed_cost.confidence]
        score += CONFIDENCE_POINTS[candidate.landed_cost.eta_confidence]

    return min(100, score)


def calculate_ranking_score(candidate: ProviderResult, query: ProductQuery) -> int:
    """Composite score used to pick the best candidate (0-100).

    Args:
        candidate: Candidate with ``match_score`` and ``landed_cost`` filled in
        query: The row query, whose price anchors cost competitiveness

    Returns:
        Weighted blend of match, cost, ETA, reliability and stock signals
    """
    score = 0.0
    if candidate.match_score is not None:
        score += candidate.match_score / 100 * MATCH_WEIGHT
    score += calculate_cost_score(candidate, query) * COST_WEIGHT
    score += calculate_eta_score(candidate) * ETA_WEIGHT
    score += calculate_reliability_score(candidate) / 100 * RELIABILITY_WEIGHT
    score += calculate_stock_score(candidate) * STOCK_WEIGHT
    return min(100, max(0, round_half_up(score * 100)))
