"""Free-text product research backed by an LLM."""
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from sourcing_matcher.services.llm.client import LLMClient

logger = structlog.get_logger(__name__)

RESEARCH_SYSTEM_PROMPT = (
    "You are a product research analyst. You extract structured product data "
    "from short, noisy product descriptions and always answer with JSON."
)

RESEARCH_PROMPT = """Analyze the following product information and extract structured data:

"{product_info}"

Extract:
1. Product title
2. Description (2-3 sentences)
3. Specifications (key-value pairs)
4. Estimated price range (if mentioned)
5. Key features
6. Suggested tags for categorization

Format your response as JSON:
{{
  "title": "Product Title",
  "description": "Product description",
  "specs": {{"dimensions": "value", "weight": "value", "material": "value"}},
  "estimatedPrice": "price range or null",
  "features": ["feature1", "feature2"],
  "tags": ["tag1", "tag2"]
}}"""


class ResearchResult(BaseModel):
    """Structured research output; every field is optional upstream."""

    title: str = ""
    description: str = ""
    specs: Dict[str, str] = Field(default_factory=dict)
    estimated_price: Optional[str] = Field(default=None, alias="estimatedPrice")
    features: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("title", "description", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("specs", mode="before")
    @classmethod
    def coerce_specs(cls, v: Any) -> Dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {str(k): str(val) for k, val in v.items() if val is not None and val != ""}

    @field_validator("estimated_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("features", "tags", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(item) for item in v if item is not None]


class ProductResearcher:
    """Turns free product text into a ``ResearchResult`` via an LLM."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def research(self, product_info: str) -> ResearchResult:
        """Extract title, description, specs and price hints from text.

        Raises:
            httpx.HTTPError: When the LLM backend fails after retries
        """
        data = await self.llm_client.complete_json(
            RESEARCH_PROMPT.format(product_info=product_info),
            system_prompt=RESEARCH_SYSTEM_PROMPT,
        )
        result = ResearchResult.model_validate(data)
        logger.debug(
            "product_research_completed",
            title=result.title,
            specs=len(result.specs),
            has_price=result.estimated_price is not None,
        )
        return result
