"""Custom exception hierarchy for product matching errors."""
from typing import Any, Optional


class ProductMatcherError(Exception):
    """Base exception for all product matching errors."""

    def __init__(self, message: str, *args, **kwargs):
        """Initialize error with message."""
        self.message = message
        super().__init__(message, *args, **kwargs)


class NameResolutionError(ProductMatcherError):
    """Raised when a row has no usable product name."""

    def __init__(self, message: str, columns: Optional[list] = None):
        self.columns = list(columns or [])
        super().__init__(message)


class ProviderError(ProductMatcherError):
    """Raised when a search provider fails."""

    def __init__(self, message: str, provider_id: str = "", display_name: str = ""):
        self.provider_id = provider_id
        self.display_name = display_name or provider_id
        super().__init__(message)


class ProviderRateLimitError(ProviderError):
    """Raised when a provider's upstream rejects calls for rate limiting.

    The job processor aborts the remaining rows of a job on this error.
    """

    def __init__(
        self,
        message: str,
        provider_id: str = "",
        display_name: str = "",
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider_id=provider_id, display_name=display_name)


class ProviderTransientError(ProviderError):
    """Raised for any other provider failure; the row continues without it."""
    pass


class ScoringError(ProductMatcherError):
    """Raised when match, cost or ranking computation fails for a row."""
    pass


class OrchestrationError(ProductMatcherError):
    """Raised for job-level configuration failures (e.g. no providers)."""
    pass


class RepositoryError(ProductMatcherError):
    """Raised when job or result persistence fails."""
    pass


class CatalogAPIError(ProductMatcherError):
    """Raised when the supplier catalog API returns an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class CatalogAuthError(CatalogAPIError):
    """Raised when catalog credentials are missing or rejected."""
    pass


class CatalogRateLimitError(CatalogAPIError):
    """Raised when the catalog API keeps answering HTTP 429 after retries."""

    def __init__(self, message: str, retry_after: Optional[float] = None, response: Any = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429, response=response)
