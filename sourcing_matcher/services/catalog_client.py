"""
Supplier Catalog API Client

Async HTTP client for the dropshipping catalog product search (listV2, falling back to
/product/list).
Uses httpx for requests, tenacity for retries on HTTP 429 and connection
errors, and spaces consecutive requests to stay under the upstream limit.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from sourcing_matcher.config import CatalogSettings, get_catalog_settings
from sourcing_matcher.errors import (
    CatalogAPIError,
    CatalogAuthError,
    CatalogRateLimitError,
)

logger = structlog.get_logger(__name__)

SEARCH_ENDPOINT = "/product/listV2"
LIST_ENDPOINT = "/product/list"
TOKEN_ENDPOINT = "/authentication/getAccessToken"
MAX_PAGE_SIZE = 100

# listV2 extras kept on each product for normalization downstream
V2_EXTRA_FIELDS = (
    "categoryId",
    "oneCategoryName",
    "twoCategoryName",
    "threeCategoryName",
    "directMinOrderNum",
    "supplierName",
    "warehouseInventoryNum",
    "totalVerifiedInventory",
)

Sleep = Callable[[float], Awaitable[None]]


class CatalogPage(BaseModel):
    """One page of catalog search results."""

    products: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0


def _parse_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    return parsed or None


def convert_v2_product(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map a listV2 product onto the catalog product shape.

    Returns None for products without an English name.
    """
    name = item.get("nameEn")
    if not isinstance(name, str) or not name.strip():
        return None

    sell_price = _parse_price(item.get("sellPrice"))
    if sell_price is None:
        sell_price = _parse_price(item.get("nowPrice"))

    product: Dict[str, Any] = {
        "pid": item.get("id"),
        "productNameEn": name,
        "productSku": item.get("sku") or item.get("spu") or "",
        "productImage": item.get("bigImage") or "",
        "sellPrice": sell_price,
    }
    if item.get("productType"):
        product["productType"] = item["productType"]
    for field in V2_EXTRA_FIELDS:
        value = item.get(field)
        if value is not None and value != "":
            product[field] = value
    return product


def is_success(payload: Dict[str, Any]) -> bool:
    """Envelope success: ``result`` true, else ``success`` true, else code 200."""
    result = payload.get("result")
    if result is True:
        return True
    if result is None and payload.get("success") is True:
        return True
    return payload.get("code") == 200


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    header = response.headers.get("Retry-After")
    if not header:
        return None
    try:
        return max(0.0, float(header))
    except ValueError:
        return None


class CatalogClient:
    """
    Async HTTP client for the supplier catalog API.

    Features:
    - Access token from settings or exchanged from api key + account email
    - Minimum interval between requests
    - Exponential backoff on HTTP 429 (honoring Retry-After) and connect errors

    Usage:
        async with CatalogClient() as client:
            page = await client.search_products("wireless earbuds", page=1, size=20)
    """

    def __init__(
        self,
        settings: Optional[CatalogSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize catalog client.

        Args:
            settings: Catalog settings (defaults to environment configuration)
            transport: Optional httpx transport (used by tests)
            sleep: Coroutine used for pacing and backoff delays
        """
        self.settings = settings or get_catalog_settings()
        self.base_url = self.settings.base_url.rstrip("/")
        self.timeout = httpx.Timeout(
            connect=5.0,
            read=self.settings.timeout,
            write=5.0,
            pool=5.0,
        )
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = self.settings.access_token
        self._last_request_at: Optional[float] = None
        self._pace_lock = asyncio.Lock()
        self._log = logger.bind(service="catalog", base_url=self.base_url)

    async def __aenter__(self) -> "CatalogClient":
        """Context manager entry - create async client."""
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "User-Agent": "sourcing-matcher/0.1",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise CatalogAPIError(
                "CatalogClient not initialized. Use 'async with CatalogClient() as client:'"
            )
        return self._client

    async def _pace(self) -> None:
        """Wait until the minimum interval since the previous request has passed."""
        async with self._pace_lock:
            interval = self.settings.min_request_interval_seconds
            if self._last_request_at is not None and interval > 0:
                elapsed = time.monotonic() - self._last_request_at
                if elapsed < interval:
                    await self._sleep(interval - elapsed)
            self._last_request_at = time.monotonic()

    def _backoff(self, retry_state) -> float:
        """Retry-After when the server sent one, else exponential backoff."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, CatalogRateLimitError) and error.retry_after is not None:
            return error.retry_after
        return self.settings.retry_base_delay_seconds * (2 ** retry_state.attempt_number)

    async def get_access_token(self) -> str:
        """
        Return the cached access token, exchanging credentials on first use.

        Raises:
            CatalogAuthError: If no token and no credentials are configured,
                or the exchange is rejected
        """
        if self._access_token:
            return self._access_token

        if not self.settings.api_key or not self.settings.account_email:
            raise CatalogAuthError(
                "Catalog credentials not configured: set CATALOG_ACCESS_TOKEN "
                "or CATALOG_API_KEY and CATALOG_ACCOUNT_EMAIL"
            )

        await self._pace()
        try:
            response = await self.client.post(
                TOKEN_ENDPOINT,
                json={
                    "email": self.settings.account_email,
                    "apiKey": self.settings.api_key,
                },
            )
        except httpx.HTTPError as e:
            raise CatalogAuthError(f"Access token request failed: {e}") from e

        if response.status_code != 200:
            raise CatalogAuthError(
                f"Access token request failed: HTTP {response.status_code}",
                status_code=response.status_code,
                response=response.text[:500],
            )

        payload = response.json()
        token = (payload.get("data") or {}).get("accessToken")
        if not is_success(payload) or not token:
            raise CatalogAuthError(
                f"Access token request rejected: {payload.get('message', 'unknown error')}",
                status_code=payload.get("code"),
                response=payload,
            )

        self._access_token = token
        self._log.info("catalog_access_token_acquired")
        return token

    async def _send(self, method: str, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Send one authenticated request and decode the JSON envelope."""
        token = await self.get_access_token()
        await self._pace()

        response = await self.client.request(
            method,
            path,
            params=params,
            headers={"CJ-Access-Token": token},
        )

        if response.status_code == 429:
            retry_after = _retry_after_seconds(response)
            self._log.warning(
                "catalog_rate_limited",
                path=path,
                retry_after=retry_after,
            )
            raise CatalogRateLimitError(
                "Catalog API rate limit exceeded",
                retry_after=retry_after,
                response=response.text[:500],
            )

        if response.status_code in (401, 403):
            self._access_token = None
            raise CatalogAuthError(
                f"Catalog API rejected credentials: HTTP {response.status_code}",
                status_code=response.status_code,
                response=response.text[:500],
            )

        if response.status_code != 200:
            raise CatalogAPIError(
                f"Catalog API request failed: HTTP {response.status_code}",
                status_code=response.status_code,
                response=response.text[:500],
            )

        try:
            return response.json()
        except ValueError as e:
            raise CatalogAPIError(
                "Catalog API returned invalid JSON",
                status_code=response.status_code,
                response=response.text[:500],
            ) from e

    async def _request(self, method: str, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Send a request, retrying rate limits and connection failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=self._backoff,
            retry=retry_if_exception_type(
                (CatalogRateLimitError, httpx.ConnectError, httpx.TimeoutException)
            ),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send(method, path, params)
        except httpx.TimeoutException as e:
            raise CatalogAPIError("Catalog API request timed out") from e
        except httpx.HTTPError as e:
            raise CatalogAPIError(f"Catalog API connection failed: {e}") from e
        raise CatalogAPIError("Catalog API request was not attempted")

    async def search_products(
        self,
        keyword: str,
        page: int = 1,
        size: int = 20,
        start_sell_price: Optional[float] = None,
        end_sell_price: Optional[float] = None,
        country_code: Optional[str] = None,
    ) -> CatalogPage:
        """
        Search the catalog by keyword.

        Queries listV2 first. Any failure other than a rate limit or rejected
        credentials is retried once against the older ``/product/list``
        endpoint, which has no warehouse country filter.

        Args:
            keyword: Free-text product name
            page: 1-based page number
            size: Page size (capped at 100)
            start_sell_price: Minimum sell price filter
            end_sell_price: Maximum sell price filter
            country_code: Warehouse country filter

        Returns:
            CatalogPage with converted products and the upstream total

        Raises:
            CatalogRateLimitError: If HTTP 429 persists after retries
            CatalogAuthError: If credentials are missing or rejected
            CatalogAPIError: If both endpoints fail
        """
        size = min(size, MAX_PAGE_SIZE)
        try:
            return await self._search_v2(
                keyword, page, size, start_sell_price, end_sell_price, country_code
            )
        except (CatalogAuthError, CatalogRateLimitError):
            raise
        except CatalogAPIError as e:
            self._log.warning(
                "catalog_listv2_failed_falling_back",
                keyword=keyword,
                error=e.message,
                status_code=e.status_code,
            )

        return await self._search_list(keyword, page, size, start_sell_price, end_sell_price)

    async def _search_v2(
        self,
        keyword: str,
        page: int,
        size: int,
        start_sell_price: Optional[float],
        end_sell_price: Optional[float],
        country_code: Optional[str],
    ) -> CatalogPage:
        params: Dict[str, Any] = {
            "keyWord": keyword,
            "page": page,
            "size": size,
        }
        if start_sell_price is not None:
            params["startSellPrice"] = start_sell_price
        if end_sell_price is not None:
            params["endSellPrice"] = end_sell_price
        if country_code:
            params["countryCode"] = country_code

        payload = await self._request("GET", SEARCH_ENDPOINT, params)

        if not is_success(payload):
            raise CatalogAPIError(
                f"Search failed: {payload.get('message', 'unknown error')}",
                status_code=payload.get("code"),
                response=payload,
            )

        data = payload.get("data") or {}
        products: List[Dict[str, Any]] = []
        for content_item in data.get("content") or []:
            for item in content_item.get("productList") or []:
                product = convert_v2_product(item)
                if product is not None:
                    products.append(product)

        total = data.get("totalRecords")
        if not isinstance(total, int):
            total = len(products)

        self._log.debug(
            "catalog_search_completed",
            keyword=keyword,
            page=page,
            products=len(products),
            total=total,
        )
        return CatalogPage(products=products, total=total)

    async def _search_list(
        self,
        keyword: str,
        page: int,
        size: int,
        min_price: Optional[float],
        max_price: Optional[float],
    ) -> CatalogPage:
        """Search through ``/product/list``, whose products need no conversion."""
        params: Dict[str, Any] = {
            "productNameEn": keyword,
            "pageNum": page,
            "pageSize": size,
        }
        if min_price is not None:
            params["minPrice"] = min_price
        if max_price is not None:
            params["maxPrice"] = max_price

        payload = await self._request("GET", LIST_ENDPOINT, params)

        if not is_success(payload):
            raise CatalogAPIError(
                f"Search failed: {payload.get('message', 'unknown error')}",
                status_code=payload.get("code"),
                response=payload,
            )

        data = payload.get("data") or {}
        products = [dict(item) for item in data.get("list") or [] if isinstance(item, dict)]
        for product in products:
            product["sellPrice"] = _parse_price(product.get("sellPrice"))

        total = data.get("total")
        if not isinstance(total, int):
            total = len(products)

        self._log.debug(
            "catalog_list_search_completed",
            keyword=keyword,
            page=page,
            products=len(products),
            total=total,
        )
        return CatalogPage(products=products, total=total)
