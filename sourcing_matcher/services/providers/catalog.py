"""Supplier catalog search provider.

Paginates the catalog's keyword search until enough candidates are
collected, normalizes each product into a ``ProviderResult`` and applies the
filters the catalog API cannot apply itself (MOQ, lead time, delivery days,
origin set, result cap).
"""
import asyncio
import re
from typing import Any, Dict, List, Optional

import structlog

from sourcing_matcher.config import MatcherSettings, get_matcher_settings
from sourcing_matcher.errors import (
    CatalogAPIError,
    CatalogRateLimitError,
    ProviderRateLimitError,
    ProviderTransientError,
)
from sourcing_matcher.models.matching import ProductQuery, ProviderResult, SearchCriteria
from sourcing_matcher.services.catalog_client import CatalogClient
from sourcing_matcher.services.providers.base import SearchProvider
from sourcing_matcher.services.sku import coerce_sku, extract_sku

logger = structlog.get_logger(__name__)

PRODUCT_URL_TEMPLATE = "https://cjdropshipping.com/product/{slug}-p-{pid}.html"
CATALOG_ORIGIN = "CN"
CATALOG_CURRENCY = "USD"
# Checked after the product's own productSku
FALLBACK_SKU_FIELDS = ("sku", "SKU", "productSku", "product_sku", "spu", "SPU")


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def build_product_url(pid: str, name: str) -> str:
    """Product page URL with a slug derived from the product name."""
    slug = name.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9\-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")[:100]
    return PRODUCT_URL_TEMPLATE.format(slug=slug, pid=pid)


def _images(product: Dict[str, Any]) -> List[str]:
    images: List[str] = []
    primary = product.get("productImage")
    if primary:
        images.append(primary)
    for image in product.get("productImageList") or []:
        url = image.get("url") if isinstance(image, dict) else None
        if url and url not in images:
            images.append(url)
    return images


def _price(product: Dict[str, Any]) -> float:
    """Sell price, then list price, then first variant price, then 0."""
    variants = product.get("variantList") or []
    first_variant = variants[0] if variants and isinstance(variants[0], dict) else {}
    for value in (
        product.get("sellPrice"),
        product.get("listPrice"),
        first_variant.get("sellPrice"),
        first_variant.get("listPrice"),
    ):
        price = _to_number(value)
        if price:
            return price
    return 0.0


def _sku(product: Dict[str, Any], name: str) -> Optional[str]:
    sku = coerce_sku(product.get("productSku"))
    if sku:
        return sku
    for field in FALLBACK_SKU_FIELDS:
        sku = coerce_sku(product.get(field), allow_numeric=True)
        if sku:
            return sku
    return extract_sku(raw_data=product, label=name)


def _moq(product: Dict[str, Any]) -> Optional[int]:
    """Dedicated minimum-order field, else first-variant stock."""
    direct = _to_number(product.get("directMinOrderNum"))
    if direct and direct > 0:
        return int(direct)

    variants = product.get("variantList") or []
    if variants and isinstance(variants[0], dict):
        stock = _to_number(variants[0].get("stock"))
        if stock and stock > 0:
            return max(1, int(stock))
    return None


def _specs(product: Dict[str, Any], sku: Optional[str]) -> Dict[str, str]:
    specs: Dict[str, str] = {}
    if sku:
        specs["sku"] = sku

    if product.get("descriptionEn"):
        if product.get("packingWeight"):
            specs["Weight"] = f"{product['packingWeight']} kg"
        length = product.get("packingLength")
        width = product.get("packingWidth")
        height = product.get("packingHeight")
        if length and width and height:
            specs["Dimensions"] = f"{length}x{width}x{height} cm"

    for field in ("oneCategoryName", "twoCategoryName", "threeCategoryName", "categoryName"):
        if product.get(field):
            specs["Category"] = str(product[field])
            break

    if product.get("supplierName"):
        specs["Supplier"] = str(product["supplierName"])
    return specs


class CatalogProvider(SearchProvider):
    """Search provider backed by the supplier catalog API.

    Pagination stops when the target count is reached, a page comes back
    short, every upstream record has been fetched, or the page ceiling is hit.
    """

    provider_id = "catalog"
    display_name = "CJ Dropshipping"

    def __init__(
        self,
        client: CatalogClient,
        settings: Optional[MatcherSettings] = None,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.settings = settings or get_matcher_settings()
        self._sleep = sleep
        self._log = logger.bind(provider=self.provider_id)

    def result_limit(self, criteria: SearchCriteria) -> int:
        cap = self.settings.catalog_result_cap
        if criteria.max_results is not None:
            return min(criteria.max_results, cap)
        return cap

    def target_results(self, criteria: SearchCriteria) -> int:
        """Candidates to collect before paging stops: max(4, min(10, limit))."""
        return max(
            self.settings.catalog_min_results,
            min(self.settings.catalog_desired_results, self.result_limit(criteria)),
        )

    @staticmethod
    def country_code(criteria: SearchCriteria) -> Optional[str]:
        if criteria.ship_from:
            return criteria.ship_from
        if criteria.shipping_origin:
            return criteria.shipping_origin[0]
        return None

    async def search(
        self,
        query: ProductQuery,
        criteria: SearchCriteria,
    ) -> List[ProviderResult]:
        name = query.name.strip()
        if not name:
            self._log.warning("catalog_empty_query")
            return []

        try:
            products = await self._fetch_products(name, criteria)
        except CatalogRateLimitError as e:
            raise ProviderRateLimitError(
                e.message,
                provider_id=self.provider_id,
                display_name=self.display_name,
                retry_after=e.retry_after,
            ) from e
        except CatalogAPIError as e:
            raise ProviderTransientError(
                e.message,
                provider_id=self.provider_id,
                display_name=self.display_name,
            ) from e

        if not products:
            self._log.info("catalog_no_products", query=name)
            return []

        results = [self.normalize(product) for product in products]
        filtered = self.apply_post_filters(results, criteria)

        if len(filtered) < self.settings.catalog_min_results:
            self._log.warning(
                "catalog_few_results_after_filtering",
                query=name,
                fetched=len(results),
                remaining=len(filtered),
            )
        return filtered

    async def _fetch_products(self, name: str, criteria: SearchCriteria) -> List[Dict[str, Any]]:
        page_size = self.settings.catalog_page_size
        max_pages = self.settings.catalog_max_pages
        target = self.target_results(criteria)
        price_range = criteria.price_range

        products: List[Dict[str, Any]] = []
        total_available = 0
        page = 1

        while len(products) < target and page <= max_pages:
            result = await self.client.search_products(
                name,
                page=page,
                size=page_size,
                start_sell_price=price_range.min if price_range else None,
                end_sell_price=price_range.max if price_range else None,
                country_code=self.country_code(criteria),
            )
            if page == 1:
                total_available = result.total
            products.extend(result.products)

            self._log.debug(
                "catalog_page_fetched",
                page=page,
                page_products=len(result.products),
                collected=len(products),
                total=total_available,
            )

            if len(result.products) < page_size:
                break
            if total_available > 0 and len(products) >= total_available:
                break
            if len(products) >= target:
                break

            page += 1
            if page <= max_pages:
                await self._sleep(self.settings.catalog_page_delay_seconds)

        return products

    def normalize(self, product: Dict[str, Any]) -> ProviderResult:
        """Convert a catalog product into a candidate listing."""
        pid = str(product.get("pid") or "")
        name = str(product.get("productNameEn") or "")
        sku = _sku(product, name)

        return ProviderResult(
            provider_id=self.provider_id,
            provider_name=self.display_name,
            product_id=pid,
            title=name,
            description=product.get("descriptionEn") or product.get("description") or "",
            price=_price(product),
            currency=CATALOG_CURRENCY,
            images=_images(product),
            shipping_origin=CATALOG_ORIGIN,
            supplier_url=build_product_url(pid, name),
            specs=_specs(product, sku),
            sku=sku,
            moq=_moq(product),
            raw_data=product,
        )

    def apply_post_filters(
        self,
        results: List[ProviderResult],
        criteria: SearchCriteria,
    ) -> List[ProviderResult]:
        """Filters the catalog API cannot apply; unknown values pass."""
        filtered = results
        if criteria.min_moq is not None:
            filtered = [r for r in filtered if r.moq is None or r.moq >= criteria.min_moq]
        if criteria.max_moq is not None:
            filtered = [r for r in filtered if r.moq is None or r.moq <= criteria.max_moq]
        if criteria.max_lead_time_days is not None:
            filtered = [
                r for r in filtered
                if r.lead_time_days is None or r.lead_time_days <= criteria.max_lead_time_days
            ]
        if criteria.max_delivery_days is not None:
            filtered = [
                r for r in filtered
                if r.estimated_delivery_days is None
                or r.estimated_delivery_days <= criteria.max_delivery_days
            ]
        if criteria.shipping_origin:
            filtered = [r for r in filtered if r.shipping_origin in criteria.shipping_origin]
        return filtered[:self.result_limit(criteria)]
