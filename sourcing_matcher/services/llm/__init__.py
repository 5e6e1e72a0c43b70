"""LLM-backed product research used by the web provider."""

from sourcing_matcher.services.llm.client import (
    LLMClient,
    OllamaClient,
    MockLLMClient,
    get_llm_client,
)
from sourcing_matcher.services.llm.research import ProductResearcher, ResearchResult

__all__ = [
    "LLMClient",
    "OllamaClient",
    "MockLLMClient",
    "get_llm_client",
    "ProductResearcher",
    "ResearchResult",
]
