"""Pydantic validation models."""

from sourcing_matcher.models.matching import (
    Confidence,
    ProductQuery,
    PriceRange,
    SearchCriteria,
    LandedCostEstimate,
    ProviderResult,
)
from sourcing_matcher.models.jobs import (
    RowData,
    JobStatus,
    ResultStatus,
    JobProgress,
    MatcherJob,
    MatchResult,
    SubmitMatcherJobRequest,
    JobWithResults,
)

__all__ = [
    # Matching models
    "Confidence",
    "ProductQuery",
    "PriceRange",
    "SearchCriteria",
    "LandedCostEstimate",
    "ProviderResult",
    # Job models
    "RowData",
    "JobStatus",
    "ResultStatus",
    "JobProgress",
    "MatcherJob",
    "MatchResult",
    "SubmitMatcherJobRequest",
    "JobWithResults",
]
