"""Pytest configuration and fixtures for test suite.

This is the root-level conftest.py that provides:
- Basic environment variable defaults
- Shared fixtures for all tests

Integration-specific fixtures are in tests/integration/conftest.py
"""
import os

# Set environment variables BEFORE importing modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./matcher-test.db")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("LLM_BACKEND", "mock")

from typing import List  # noqa: E402

import pytest  # noqa: E402

from sourcing_matcher.config import MatcherSettings  # noqa: E402
from sourcing_matcher.models.matching import ProviderResult  # noqa: E402


def make_candidate(
    product_id: str = "cj-1",
    title: str = "Wireless Bluetooth Earbuds",
    price: float = 19.0,
    provider_id: str = "catalog",
    provider_name: str = "CJ Dropshipping",
    shipping_origin: str = "CN",
    **kwargs,
) -> ProviderResult:
    """Build a candidate listing with sensible catalog defaults."""
    return ProviderResult(
        provider_id=provider_id,
        provider_name=provider_name,
        product_id=product_id,
        title=title,
        price=price,
        shipping_origin=shipping_origin,
        **kwargs,
    )


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def matcher_settings() -> MatcherSettings:
    """Settings with pacing delays that tests can assert on."""
    return MatcherSettings(
        inter_row_delay_seconds=2.0,
        inter_provider_delay_seconds=0.5,
        catalog_page_delay_seconds=0.3,
    )


@pytest.fixture
def candidate_factory():
    return make_candidate
