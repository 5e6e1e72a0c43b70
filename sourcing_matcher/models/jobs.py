"""Pydantic models for matcher jobs and their per-row results.

State Transitions (job):
    - pending → processing (processor picks the job up)
    - processing → completed (last row done, even if some rows errored)
    - processing → failed (configuration error, unexpected exception,
      or a provider rate limit that aborted the row loop)

State Transitions (row result):
    - searching → found | not_found | error
    - error (no product name; never searched)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from sourcing_matcher.models.matching import ProviderResult, SearchCriteria

RowData = Dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class JobStatus(str, Enum):
    """Job processing states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ResultStatus(str, Enum):
    """Per-row result states."""
    PENDING = "pending"
    SEARCHING = "searching"
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class JobProgress(BaseModel):
    """Progress counter stored as ``{"processed": int, "total": int}``."""

    processed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)


class MatcherJob(BaseModel):
    """A bulk matching job over a list of spreadsheet rows."""

    id: str = Field(default_factory=_new_id)
    name: Optional[str] = None
    sheet_data: List[RowData] = Field(default_factory=list)
    providers: List[str] = Field(default_factory=list)
    criteria: SearchCriteria = Field(default_factory=SearchCriteria)
    status: JobStatus = JobStatus.PENDING
    progress: JobProgress = Field(default_factory=JobProgress)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class MatchResult(BaseModel):
    """Outcome of searching one row: candidates, best match and its figures."""

    id: str = Field(default_factory=_new_id)
    job_id: str
    row_index: int = Field(default=0, ge=0)
    original_product: RowData = Field(default_factory=dict)
    matches: List[ProviderResult] = Field(default_factory=list)
    best_match_id: Optional[str] = None
    status: ResultStatus = ResultStatus.PENDING
    error: Optional[str] = None
    sku: Optional[str] = None
    landed_cost_value: Optional[float] = None
    landed_cost_currency: Optional[str] = None
    eta_days: Optional[int] = None
    reliability_score: Optional[int] = None
    ranking_score: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def best_match(self) -> Optional[ProviderResult]:
        """Match whose product id is ``best_match_id``, else the first match."""
        for match in self.matches:
            if match.product_id == self.best_match_id:
                return match
        return self.matches[0] if self.matches else None


class SubmitMatcherJobRequest(BaseModel):
    """Job submission input from the surrounding system."""

    rows: List[RowData] = Field(..., min_length=1)
    providers: List[str] = Field(..., min_length=1)
    criteria: SearchCriteria = Field(default_factory=SearchCriteria)
    name: Optional[str] = None

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: List[str]) -> List[str]:
        """Normalize provider ids and drop duplicates, keeping order."""
        seen: List[str] = []
        for provider_id in v:
            key = provider_id.strip().lower()
            if key and key not in seen:
                seen.append(key)
        if not seen:
            raise ValueError("at least one provider is required")
        return seen


class JobWithResults(BaseModel):
    """Job query output: the job plus its results in creation order."""

    job: MatcherJob
    results: List[MatchResult] = Field(default_factory=list)
