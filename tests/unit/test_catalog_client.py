"""Unit tests for the supplier catalog HTTP client.

Requests are served by ``httpx.MockTransport`` handlers; pacing and backoff
delays go through a recording sleep so no test actually waits.
"""
import json

import httpx
import pytest

from sourcing_matcher.config import CatalogSettings
from sourcing_matcher.errors import CatalogAPIError, CatalogAuthError, CatalogRateLimitError
from sourcing_matcher.services.catalog_client import (
    CatalogClient,
    convert_v2_product,
    is_success,
)

BASE_URL = "https://catalog.test/api2.0/v1"


def _settings(**overrides) -> CatalogSettings:
    values = dict(
        base_url=BASE_URL,
        access_token="static-token",
        max_retries=2,
        retry_base_delay_seconds=1.0,
        min_request_interval_seconds=0.0,
    )
    values.update(overrides)
    return CatalogSettings(**values)


def _search_payload(products, total=None):
    return {
        "code": 200,
        "result": True,
        "message": "Success",
        "data": {
            "totalRecords": total if total is not None else len(products),
            "content": [{"productList": products}],
        },
    }


def _v2_product(pid: str, name: str = "Wireless Earbuds", price="9.99"):
    return {"id": pid, "nameEn": name, "sku": f"SKU-{pid}", "bigImage": f"https://img/{pid}.jpg", "sellPrice": price}


class TestPayloadHelpers:
    """Tests for listV2 conversion and envelope checks."""

    def test_convert_v2_product(self):
        """Test listV2 fields map onto the catalog product shape."""
        product = convert_v2_product({
            "id": "p1",
            "nameEn": "Desk Lamp",
            "spu": "SPU-1",
            "nowPrice": "12.5",
            "supplierName": "Acme",
            "warehouseInventoryNum": 40,
            "categoryId": "",
        })

        assert product["pid"] == "p1"
        assert product["productNameEn"] == "Desk Lamp"
        assert product["productSku"] == "SPU-1"
        assert product["sellPrice"] == 12.5
        assert product["supplierName"] == "Acme"
        assert product["warehouseInventoryNum"] == 40
        assert "categoryId" not in product

    def test_convert_skips_nameless_products(self):
        """Test products without an English name are dropped."""
        assert convert_v2_product({"id": "p1", "nameEn": " "}) is None

    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"result": True}, True),
            ({"result": None, "success": True}, True),
            ({"code": 200}, True),
            ({"result": False, "code": 1600}, False),
        ],
    )
    def test_is_success(self, payload, expected):
        """Test the envelope success rules."""
        assert is_success(payload) is expected


class TestCatalogClientSearch:
    """Tests for CatalogClient.search_products."""

    @pytest.mark.asyncio
    async def test_search_sends_params_and_flattens_products(self, no_sleep):
        """Test query parameters, auth header and product flattening."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_search_payload([_v2_product("p1"), _v2_product("p2")], total=57))

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            page = await client.search_products(
                "wireless earbuds",
                page=2,
                size=500,
                start_sell_price=5,
                end_sell_price=25,
                country_code="CN",
            )

        request = seen[0]
        assert request.url.path.endswith("/product/listV2")
        assert request.url.params["keyWord"] == "wireless earbuds"
        assert request.url.params["page"] == "2"
        assert request.url.params["size"] == "100"
        assert request.url.params["startSellPrice"] == "5"
        assert request.url.params["endSellPrice"] == "25"
        assert request.url.params["countryCode"] == "CN"
        assert request.headers["CJ-Access-Token"] == "static-token"
        assert [p["pid"] for p in page.products] == ["p1", "p2"]
        assert page.total == 57

    @pytest.mark.asyncio
    async def test_total_defaults_to_product_count(self, no_sleep):
        """Test a missing total falls back to the number of products."""
        def handler(request):
            payload = _search_payload([_v2_product("p1")])
            del payload["data"]["totalRecords"]
            return httpx.Response(200, json=payload)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            page = await client.search_products("lamp")

        assert page.total == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_raises(self, no_sleep):
        """Test a failed envelope on both endpoints raises CatalogAPIError."""
        def handler(request):
            return httpx.Response(200, json={"code": 1600, "result": False, "message": "bad keyword"})

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogAPIError, match="bad keyword"):
                await client.search_products("lamp")

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self, no_sleep):
        """Test a 500 is not retried on either endpoint and keeps its status code."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="boom")

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogAPIError) as exc_info:
                await client.search_products("lamp")

        assert exc_info.value.status_code == 500
        assert [c.url.path.rsplit("/", 1)[-1] for c in calls] == ["listV2", "list"]

    @pytest.mark.asyncio
    async def test_client_requires_context_manager(self):
        """Test using the client outside ``async with`` fails clearly."""
        client = CatalogClient(_settings())

        with pytest.raises(CatalogAPIError, match="not initialized"):
            await client.search_products("lamp")


class TestCatalogClientListFallback:
    """Tests for the /product/list fallback when listV2 fails."""

    @pytest.mark.asyncio
    async def test_falls_back_to_list_endpoint(self, no_sleep):
        """Test a listV2 failure is answered from /product/list."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.endswith("/product/listV2"):
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={
                "code": 200,
                "result": True,
                "data": {
                    "total": 41,
                    "list": [
                        {"pid": "L1", "productNameEn": "Desk Lamp", "productSku": "LMP-1", "sellPrice": "12.50"},
                    ],
                },
            })

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            page = await client.search_products(
                "desk lamp",
                page=3,
                size=10,
                start_sell_price=5,
                end_sell_price=30,
                country_code="US",
            )

        fallback = seen[1]
        assert fallback.url.path.endswith("/product/list")
        assert fallback.url.params["productNameEn"] == "desk lamp"
        assert fallback.url.params["pageNum"] == "3"
        assert fallback.url.params["pageSize"] == "10"
        assert fallback.url.params["minPrice"] == "5"
        assert fallback.url.params["maxPrice"] == "30"
        assert "countryCode" not in fallback.url.params
        assert page.total == 41
        assert page.products == [
            {"pid": "L1", "productNameEn": "Desk Lamp", "productSku": "LMP-1", "sellPrice": 12.5},
        ]

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_fall_back(self, no_sleep):
        """Test an exhausted 429 on listV2 is raised without touching /product/list."""
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(429)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogRateLimitError):
                await client.search_products("lamp")

        assert all(path.endswith("/product/listV2") for path in paths)

    @pytest.mark.asyncio
    async def test_rejected_credentials_do_not_fall_back(self, no_sleep):
        """Test a 403 on listV2 is raised without touching /product/list."""
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(403)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogAuthError):
                await client.search_products("lamp")

        assert len(paths) == 1


class TestCatalogClientRetries:
    """Tests for rate-limit and connection retries."""

    @pytest.mark.asyncio
    async def test_429_is_retried_honoring_retry_after(self, no_sleep):
        """Test a 429 waits for Retry-After and then succeeds."""
        responses = [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json=_search_payload([_v2_product("p1")])),
        ]

        def handler(request):
            return responses.pop(0)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            page = await client.search_products("lamp")

        assert len(page.products) == 1
        assert no_sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_429_backoff_is_exponential(self, no_sleep):
        """Test missing Retry-After falls back to base * 2^attempt."""
        def handler(request):
            return httpx.Response(429)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogRateLimitError) as exc_info:
                await client.search_products("lamp")

        assert exc_info.value.status_code == 429
        assert no_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried_then_wrapped(self, no_sleep):
        """Test persistent connection failures become CatalogAPIError."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with CatalogClient(_settings(), transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            with pytest.raises(CatalogAPIError, match="connection failed"):
                await client.search_products("lamp")

        assert len(calls) == 6
        assert no_sleep.delays == [2.0, 4.0, 2.0, 4.0]


class TestCatalogClientAuth:
    """Tests for access token handling."""

    @pytest.mark.asyncio
    async def test_token_exchanged_once(self, no_sleep):
        """Test credentials are exchanged for a token that is then reused."""
        token_requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/authentication/getAccessToken"):
                token_requests.append(json.loads(request.content))
                return httpx.Response(200, json={"code": 200, "result": True, "data": {"accessToken": "fresh"}})
            assert request.headers["CJ-Access-Token"] == "fresh"
            return httpx.Response(200, json=_search_payload([]))

        settings = _settings(access_token=None, api_key="key-1", account_email="ops@example.com")
        async with CatalogClient(settings, transport=httpx.MockTransport(handler), sleep=no_sleep) as client:
            await client.search_products("lamp")
            await client.search_products("mug")

        assert token_requests == [{"email": "ops@example.com", "apiKey": "key-1"}]

    @pytest.mark.asyncio
    async def test_missing_credentials(self, no_sleep):
        """Test no token and no credentials raises CatalogAuthError."""
        settings = _settings(access_token=None, api_key=None, account_email=None)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))

        async with CatalogClient(settings, transport=transport, sleep=no_sleep) as client:
            with pytest.raises(CatalogAuthError):
                await client.search_products("lamp")

    @pytest.mark.asyncio
    async def test_rejected_token_is_cleared(self, no_sleep):
        """Test a 401 raises CatalogAuthError and forgets the token."""
        async with CatalogClient(
            _settings(),
            transport=httpx.MockTransport(lambda request: httpx.Response(401)),
            sleep=no_sleep,
        ) as client:
            with pytest.raises(CatalogAuthError):
                await client.search_products("lamp")

            assert client._access_token is None
