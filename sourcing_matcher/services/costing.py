"""Landed-cost and delivery-time estimation from static route tables.

Routes are keyed ``"{origin}-{destination}"`` using ISO country codes (``EU``
stands for the customs union as a whole). A route missing from a table is an
explicit default branch, never an error.
"""
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

import structlog

from sourcing_matcher.models.matching import (
    Confidence,
    LandedCostEstimate,
    ProviderResult,
    SearchCriteria,
)
from sourcing_matcher.services.matching.matcher import round_half_up

logger = structlog.get_logger(__name__)

DEFAULT_ORIGIN = "CN"
DEFAULT_DESTINATION = "US"

DEFAULT_DUTY_RATE_PERCENT = 5.0
DEFAULT_SHIPPING_COST_USD = 10.0
DEFAULT_ETA_DAYS = 20

# Duty rate in percent of the unit price
DUTY_RATES: Mapping[str, float] = MappingProxyType({
    "CN-US": 7.5,
    "CN-EU": 6.0,
    "CN-GB": 5.0,
    "CN-AU": 5.0,
    "CN-CA": 6.5,
    "US-US": 0.0,
    "US-EU": 2.5,
    "US-GB": 2.0,
    "US-AU": 0.0,
    "US-CA": 0.0,
    "EU-US": 3.0,
    "EU-EU": 0.0,
    "EU-GB": 0.0,
    "EU-AU": 5.0,
    "GB-US": 2.5,
    "GB-GB": 0.0,
    "GB-EU": 0.0,
    "GB-AU": 5.0,
})

# Transit time as (min_days, max_days)
SHIPPING_TIME_ROUTES: Mapping[str, Tuple[int, int]] = MappingProxyType({
    "CN-US": (10, 25),
    "CN-EU": (12, 30),
    "CN-GB": (12, 28),
    "CN-AU": (15, 35),
    "CN-CA": (12, 28),
    "US-US": (2, 7),
    "US-EU": (5, 12),
    "US-GB": (5, 10),
    "US-AU": (7, 15),
    "US-CA": (3, 8),
    "EU-US": (5, 12),
    "EU-EU": (2, 5),
    "EU-GB": (2, 4),
    "EU-AU": (10, 20),
    "GB-US": (5, 10),
    "GB-GB": (1, 3),
    "GB-EU": (2, 5),
    "GB-AU": (10, 20),
})

# Per-unit shipping estimate in USD when the provider reports none
DEFAULT_SHIPPING_COSTS: Mapping[str, float] = MappingProxyType({
    "CN-US": 15.0,
    "CN-EU": 12.0,
    "CN-GB": 10.0,
    "CN-AU": 18.0,
    "CN-CA": 14.0,
    "US-US": 5.0,
    "US-EU": 8.0,
    "US-GB": 7.0,
    "US-AU": 15.0,
    "US-CA": 6.0,
    "EU-US": 8.0,
    "EU-EU": 5.0,
    "EU-GB": 4.0,
    "EU-AU": 12.0,
    "GB-US": 7.0,
    "GB-GB": 2.0,
    "GB-EU": 4.0,
    "GB-AU": 12.0,
})

# Static multipliers to USD; no live FX lookups
USD_RATES: Mapping[str, float] = MappingProxyType({
    "USD": 1.0,
    "EUR": 1.1,
    "GBP": 1.27,
    "CAD": 0.73,
    "AUD": 0.65,
    "CNY": 0.14,
})

SHIPPING_COST_FIELDS: Tuple[str, ...] = (
    "shippingCost",
    "shipping_cost",
    "shippingPrice",
    "freightCost",
    "logisticsCost",
)


def route_key(origin: str, destination: str) -> str:
    return f"{origin}-{destination}"


def convert_to_usd(amount: float, currency: Optional[str]) -> float:
    """Convert an amount to USD; unknown currencies pass through unchanged."""
    rate = USD_RATES.get((currency or "USD").upper(), 1.0)
    return amount * rate


def get_duty_rate(origin: str, destination: str) -> float:
    """Duty rate in percent for a route (5% when the route is unknown)."""
    return DUTY_RATES.get(route_key(origin, destination), DEFAULT_DUTY_RATE_PERCENT)


def get_default_shipping_cost(origin: str, destination: str) -> float:
    return DEFAULT_SHIPPING_COSTS.get(route_key(origin, destination), DEFAULT_SHIPPING_COST_USD)


def estimate_shipping_time(origin: str, destination: str) -> Tuple[int, Confidence]:
    """Midpoint transit days for a route and how tight the range is.

    Returns:
        Tuple of (eta_days, confidence); (20, LOW) for unknown routes
    """
    route = SHIPPING_TIME_ROUTES.get(route_key(origin, destination))
    if route is None:
        return DEFAULT_ETA_DAYS, Confidence.LOW

    min_days, max_days = route
    eta_days = round_half_up((min_days + max_days) / 2)
    spread = max_days - min_days
    if spread <= 7:
        return eta_days, Confidence.HIGH
    if spread <= 15:
        return eta_days, Confidence.MEDIUM
    return eta_days, Confidence.LOW


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def extract_shipping_cost(raw_data: Optional[Mapping[str, Any]]) -> Optional[float]:
    """First positive shipping cost found in the raw provider payload."""
    if not raw_data:
        return None
    for field in SHIPPING_COST_FIELDS:
        cost = _positive_number(raw_data.get(field))
        if cost is not None:
            return cost
    return None


def resolve_route(candidate: ProviderResult, criteria: SearchCriteria) -> Tuple[str, str]:
    """Origin and destination used for duties, shipping and ETA."""
    origin = criteria.ship_from or (candidate.shipping_origin or "").upper() or DEFAULT_ORIGIN
    destination = criteria.ship_to or DEFAULT_DESTINATION
    return origin, destination


def calculate_landed_cost(
    candidate: ProviderResult,
    criteria: SearchCriteria,
) -> Optional[LandedCostEstimate]:
    """Estimate the cost of receiving one unit at the destination.

    Args:
        candidate: Candidate listing with price, currency and raw payload
        criteria: Job criteria supplying ``ship_from`` / ``ship_to``

    Returns:
        LandedCostEstimate in USD, or None when the unit price is not positive
    """
    origin, destination = resolve_route(candidate, criteria)

    unit_price_usd = convert_to_usd(candidate.price or 0.0, candidate.currency)
    if unit_price_usd <= 0:
        logger.debug(
            "landed_cost_skipped",
            product_id=candidate.product_id,
            price=candidate.price,
            currency=candidate.currency,
        )
        return None

    shipping_cost_usd = extract_shipping_cost(candidate.raw_data)
    if shipping_cost_usd is None:
        shipping_cost_usd = get_default_shipping_cost(origin, destination)

    duties_usd = unit_price_usd * get_duty_rate(origin, destination) / 100

    if candidate.estimated_delivery_days is not None:
        eta_days = candidate.estimated_delivery_days
        eta_confidence = Confidence.MEDIUM
    else:
        eta_days, eta_confidence = estimate_shipping_time(origin, destination)

    if not candidate.raw_data or not candidate.shipping_origin:
        confidence = Confidence.LOW
    else:
        confidence = Confidence.MEDIUM

    return LandedCostEstimate(
        unit_price_usd=unit_price_usd,
        shipping_cost_usd=shipping_cost_usd,
        duties_usd=duties_usd,
        currency="USD",
        confidence=confidence,
        eta_days=eta_days,
        eta_confidence=eta_confidence,
    )
