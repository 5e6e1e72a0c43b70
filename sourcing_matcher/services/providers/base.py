"""Abstract search provider interface for pluggable supplier sources."""
from abc import ABC, abstractmethod
from typing import List

from sourcing_matcher.models.matching import ProductQuery, ProviderResult, SearchCriteria


class SearchProvider(ABC):
    """Abstract base class for all supplier search providers.

    New sources (marketplaces, wholesale catalogs, research tools) are added
    by implementing ``search`` and registering a factory in the
    ``ProviderRegistry``; the job processor never names a concrete provider.

    Implementations must provide:
    - provider_id: stable identifier stored on every candidate
    - display_name: human-readable name used in user-facing messages
    - search(): return normalized candidates for one row
    """

    provider_id: str = ""
    display_name: str = ""

    @abstractmethod
    async def search(
        self,
        query: ProductQuery,
        criteria: SearchCriteria,
    ) -> List[ProviderResult]:
        """Search the upstream source for candidates matching the query.

        Args:
            query: Product to look for
            criteria: Job-wide filters and preferences

        Returns:
            Normalized candidates; an empty list when nothing matched

        Raises:
            ProviderRateLimitError: If the upstream rejected the call for rate
                limiting (the job processor stops the job on this)
            ProviderTransientError: On any other upstream failure
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider_id={self.provider_id!r})"


def apply_criteria_filter(
    results: List[ProviderResult],
    criteria: SearchCriteria,
) -> List[ProviderResult]:
    """Keep candidates that satisfy the shared criteria.

    Checks shipping origin membership, maximum delivery days (unknown
    passes) and price range containment.
    """
    filtered = []
    for result in results:
        if criteria.shipping_origin and result.shipping_origin not in criteria.shipping_origin:
            continue
        if (
            criteria.max_delivery_days is not None
            and result.estimated_delivery_days is not None
            and result.estimated_delivery_days > criteria.max_delivery_days
        ):
            continue
        if criteria.price_range is not None and not criteria.price_range.contains(result.price):
            continue
        filtered.append(result)
    return filtered
