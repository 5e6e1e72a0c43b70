"""Error handling module."""
from sourcing_matcher.errors.exceptions import (
    ProductMatcherError,
    NameResolutionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTransientError,
    ScoringError,
    OrchestrationError,
    RepositoryError,
    CatalogAPIError,
    CatalogAuthError,
    CatalogRateLimitError,
)

__all__ = [
    "ProductMatcherError",
    "NameResolutionError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderTransientError",
    "ScoringError",
    "OrchestrationError",
    "RepositoryError",
    "CatalogAPIError",
    "CatalogAuthError",
    "CatalogRateLimitError",
]
