"""Generic-web provider: one low-confidence candidate from LLM research."""
import re
import time
from typing import Callable, List, Optional
from urllib.parse import quote

import httpx
import structlog

from sourcing_matcher.errors import ProviderTransientError
from sourcing_matcher.models.matching import ProductQuery, ProviderResult, SearchCriteria
from sourcing_matcher.services.llm.research import ProductResearcher
from sourcing_matcher.services.providers.base import SearchProvider, apply_criteria_filter

logger = structlog.get_logger(__name__)

DEFAULT_ORIGIN = "US"
SEARCH_URL_TEMPLATE = "https://www.google.com/search?q={query}"
_PRICE_PATTERN = re.compile(r"\$?\s*(\d+\.?\d*)")


def extract_price(estimated_price: Optional[str]) -> Optional[float]:
    """First number in a free-form price hint ("$29.99", "30-50 USD")."""
    if not estimated_price:
        return None
    match = _PRICE_PATTERN.search(estimated_price)
    if not match:
        return None
    return float(match.group(1))


def build_search_text(query: ProductQuery) -> str:
    """Name, description and spec values joined into one lookup string."""
    parts = [query.name]
    if query.description:
        parts.append(query.description)
    if query.specs:
        parts.append(" ".join(query.specs.values()))
    return " ".join(parts)


class WebProvider(SearchProvider):
    """Wraps a single research result as a candidate.

    The result has no verifiable product identity (synthetic id, no images),
    so it only ever complements the catalog provider.
    """

    provider_id = "web"
    display_name = "Web Search"

    def __init__(
        self,
        researcher: ProductResearcher,
        clock: Callable[[], float] = time.time,
    ):
        self.researcher = researcher
        self._clock = clock

    async def search(
        self,
        query: ProductQuery,
        criteria: SearchCriteria,
    ) -> List[ProviderResult]:
        try:
            research = await self.researcher.research(build_search_text(query))
        except httpx.HTTPError as e:
            raise ProviderTransientError(
                f"Web research failed: {e}",
                provider_id=self.provider_id,
                display_name=self.display_name,
            ) from e

        price = extract_price(research.estimated_price) or query.price or 0.0

        result = ProviderResult(
            provider_id=self.provider_id,
            provider_name=self.display_name,
            product_id=f"web-{int(self._clock() * 1000)}",
            title=research.title or query.name,
            description=research.description,
            price=price,
            currency=criteria.currency or "USD",
            images=[],
            shipping_origin=criteria.shipping_origin[0] if criteria.shipping_origin else DEFAULT_ORIGIN,
            estimated_delivery_days=criteria.max_delivery_days or None,
            supplier_url=SEARCH_URL_TEMPLATE.format(query=quote(query.name, safe="")),
            specs=dict(research.specs),
        )

        results = apply_criteria_filter([result], criteria)
        if not results:
            logger.debug("web_result_filtered", product=query.name)
        return results
