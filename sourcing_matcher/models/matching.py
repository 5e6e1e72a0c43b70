"""Pydantic models for the product matching pipeline.

This module defines the data transfer objects exchanged between search
providers, the matcher, the landed-cost estimator and the ranking scorer.

Field names are snake_case in Python; every model also accepts and emits the
camelCase names used by the job payloads stored alongside each job
(``shippingOrigin``, ``maxDeliveryDays``, ``rawData``...).
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class Confidence(str, Enum):
    """Confidence level of a cost or delivery estimate."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProductQuery(BaseModel):
    """What we are looking for, built once per row.

    Attributes:
        name: Product name resolved from the row (required, non-empty)
        description: Optional free-text description
        price: Reference price of the original item (> 0)
        specs: Spec columns of the row (dimensions, weight, color...)
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    specs: Optional[Dict[str, str]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("name cannot be empty or whitespace")
        return v.strip()


class PriceRange(BaseModel):
    """Inclusive price bounds; either side may be open."""

    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None

    def contains(self, price: float) -> bool:
        """Check whether a price lies inside the range."""
        if self.min is not None and price < self.min:
            return False
        if self.max is not None and price > self.max:
            return False
        return True


class SearchCriteria(BaseModel):
    """Filters and preferences shared by every row and provider of a job."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    shipping_origin: Optional[List[str]] = None
    max_delivery_days: Optional[int] = Field(default=None, ge=0)
    price_range: Optional[PriceRange] = None
    currency: Optional[str] = None
    max_results: Optional[int] = Field(default=None, ge=1, le=200)
    min_moq: Optional[int] = Field(default=None, ge=0)
    max_moq: Optional[int] = Field(default=None, ge=0)
    max_lead_time_days: Optional[int] = Field(default=None, ge=0)
    ship_from: Optional[str] = None
    ship_to: Optional[str] = None
    max_shipping_cost: Optional[float] = Field(default=None, ge=0)

    @field_validator("shipping_origin")
    @classmethod
    def normalize_origins(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Upper-case country codes and drop blanks."""
        if v is None:
            return None
        return [code.strip().upper() for code in v if code and code.strip()]

    @field_validator("ship_from", "ship_to")
    @classmethod
    def normalize_country(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()


class LandedCostEstimate(BaseModel):
    """Cost to receive one unit at the destination, in USD.

    ``total_landed_cost_usd`` is derived from the three components and can
    never drift from their sum.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    unit_price_usd: float
    shipping_cost_usd: float
    duties_usd: float
    currency: str = "USD"
    confidence: Confidence
    eta_days: Optional[int] = None
    eta_confidence: Confidence

    @computed_field(alias="totalLandedCostUsd")
    @property
    def total_landed_cost_usd(self) -> float:
        return self.unit_price_usd + self.shipping_cost_usd + self.duties_usd


class ProviderResult(BaseModel):
    """A normalized candidate listing returned by a search provider.

    The last four fields are filled in downstream (matcher, cost estimator,
    ranking scorer) on copies of the provider's instance.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    provider_id: str
    provider_name: str
    product_id: str
    title: str
    description: str = ""
    price: float = 0.0
    currency: str = "USD"
    images: List[str] = Field(default_factory=list)
    shipping_origin: str = ""
    estimated_delivery_days: Optional[int] = None
    supplier_url: str = ""
    specs: Optional[Dict[str, Any]] = None
    sku: Optional[str] = None
    moq: Optional[int] = None
    lead_time_days: Optional[int] = None
    raw_data: Optional[Dict[str, Any]] = None

    match_score: Optional[int] = None
    landed_cost: Optional[LandedCostEstimate] = None
    ranking_score: Optional[int] = None
    reliability_score: Optional[int] = None

    def to_storage(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for result storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
