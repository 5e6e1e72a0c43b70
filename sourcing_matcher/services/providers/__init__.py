"""Supplier search providers and the registry that selects them per job."""

from sourcing_matcher.services.providers.base import SearchProvider, apply_criteria_filter
from sourcing_matcher.services.providers.catalog import CatalogProvider
from sourcing_matcher.services.providers.web import WebProvider
from sourcing_matcher.services.providers.registry import (
    ProviderRegistry,
    build_default_registry,
)

__all__ = [
    "SearchProvider",
    "apply_criteria_filter",
    "CatalogProvider",
    "WebProvider",
    "ProviderRegistry",
    "build_default_registry",
]
