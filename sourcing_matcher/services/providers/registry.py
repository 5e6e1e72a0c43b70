"""Provider registry mapping provider ids to factories.

A registry is built once per job run, not kept as module state, so each run
gets providers bound to that run's clients and settings.
"""
import asyncio
from typing import Callable, Dict, Iterable, List, Optional

import structlog

from sourcing_matcher.config import MatcherSettings
from sourcing_matcher.services.catalog_client import CatalogClient
from sourcing_matcher.services.llm.research import ProductResearcher
from sourcing_matcher.services.providers.base import SearchProvider
from sourcing_matcher.services.providers.catalog import CatalogProvider
from sourcing_matcher.services.providers.web import WebProvider

logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[], SearchProvider]


class ProviderRegistry:
    """Explicit ``provider_id -> factory`` map with alias support."""

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._aliases: Dict[str, str] = {}

    def register(
        self,
        provider_id: str,
        factory: ProviderFactory,
        aliases: Iterable[str] = (),
    ) -> None:
        """Register a factory under a canonical id and optional aliases.

        Raises:
            ValueError: If the id or an alias is already taken
        """
        names = [provider_id, *aliases]
        for name in names:
            if name in self._factories or name in self._aliases:
                raise ValueError(f"Provider '{name}' is already registered")
        self._factories[provider_id] = factory
        for alias in aliases:
            self._aliases[alias] = provider_id

    def canonical_id(self, provider_id: str) -> Optional[str]:
        key = provider_id.strip().lower()
        if key in self._factories:
            return key
        return self._aliases.get(key)

    @property
    def provider_ids(self) -> List[str]:
        """Canonical ids in registration order."""
        return list(self._factories)

    def resolve(self, provider_ids: Iterable[str]) -> List[SearchProvider]:
        """Instantiate the requested providers in registration order.

        Unknown ids are logged and skipped; duplicates (including an id and
        its alias) resolve to a single provider.
        """
        requested = set()
        for provider_id in provider_ids:
            canonical = self.canonical_id(provider_id)
            if canonical is None:
                logger.warning(
                    "unknown_provider_ignored",
                    provider_id=provider_id,
                    known=self.provider_ids,
                )
                continue
            requested.add(canonical)

        return [
            factory()
            for provider_id, factory in self._factories.items()
            if provider_id in requested
        ]


def build_default_registry(
    catalog_client: CatalogClient,
    researcher: ProductResearcher,
    settings: Optional[MatcherSettings] = None,
    sleep=asyncio.sleep,
) -> ProviderRegistry:
    """Registry with the catalog provider (alias ``cj``) and the web provider."""
    registry = ProviderRegistry()
    registry.register(
        CatalogProvider.provider_id,
        lambda: CatalogProvider(catalog_client, settings=settings, sleep=sleep),
        aliases=("cj",),
    )
    registry.register(WebProvider.provider_id, lambda: WebProvider(researcher))
    return registry
