"""Job and result repository ports with in-memory implementations.

The job processor is the only writer during a run. Updates are field-level
patches keyed by model field name (``status``, ``progress``, ``matches``...).
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sourcing_matcher.errors import RepositoryError
from sourcing_matcher.models.jobs import JobWithResults, MatcherJob, MatchResult


class JobRepository(ABC):
    """Persistence port for matcher jobs."""

    @abstractmethod
    async def create(self, job: MatcherJob) -> MatcherJob:
        """Insert a new job and return it as stored."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[MatcherJob]:
        """Return the job, or None if it does not exist."""

    @abstractmethod
    async def update_fields(self, job_id: str, **patch: Any) -> MatcherJob:
        """Apply a field-level patch and bump ``updated_at``.

        Raises:
            RepositoryError: If the job does not exist
        """

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Remove the job; False when it did not exist."""

    @abstractmethod
    async def list(self) -> List[MatcherJob]:
        """All jobs, newest first."""


class ResultRepository(ABC):
    """Persistence port for per-row match results."""

    @abstractmethod
    async def create(self, result: MatchResult) -> MatchResult:
        """Insert a new result and return it as stored."""

    @abstractmethod
    async def get(self, result_id: str) -> Optional[MatchResult]:
        """Return the result, or None if it does not exist."""

    @abstractmethod
    async def update_fields(self, result_id: str, **patch: Any) -> MatchResult:
        """Apply a field-level patch.

        Raises:
            RepositoryError: If the result does not exist
        """

    @abstractmethod
    async def list_by_job(self, job_id: str) -> List[MatchResult]:
        """All results of a job in creation order."""

    @abstractmethod
    async def delete_by_job(self, job_id: str) -> int:
        """Remove every result of a job and return how many were removed."""


def _check_patch(model_cls, patch: Dict[str, Any]) -> None:
    unknown = set(patch) - set(model_cls.model_fields)
    if unknown:
        raise RepositoryError(
            f"Unknown {model_cls.__name__} fields: {', '.join(sorted(unknown))}"
        )


class InMemoryJobRepository(JobRepository):
    """Dict-backed job store for tests and single-process runs."""

    def __init__(self):
        self._jobs: Dict[str, MatcherJob] = {}

    async def create(self, job: MatcherJob) -> MatcherJob:
        if job.id in self._jobs:
            raise RepositoryError(f"Job {job.id} already exists")
        self._jobs[job.id] = job.model_copy(deep=True)
        return job.model_copy(deep=True)

    async def get(self, job_id: str) -> Optional[MatcherJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def update_fields(self, job_id: str, **patch: Any) -> MatcherJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise RepositoryError(f"Job {job_id} not found")
        _check_patch(MatcherJob, patch)
        patch.setdefault("updated_at", datetime.now(timezone.utc))
        updated = job.model_copy(update=patch, deep=True)
        self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    async def list(self) -> List[MatcherJob]:
        jobs = sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)
        return [job.model_copy(deep=True) for job in jobs]


class InMemoryResultRepository(ResultRepository):
    """Dict-backed result store; insertion order is creation order."""

    def __init__(self):
        self._results: Dict[str, MatchResult] = {}

    async def create(self, result: MatchResult) -> MatchResult:
        if result.id in self._results:
            raise RepositoryError(f"Result {result.id} already exists")
        self._results[result.id] = result.model_copy(deep=True)
        return result.model_copy(deep=True)

    async def get(self, result_id: str) -> Optional[MatchResult]:
        result = self._results.get(result_id)
        return result.model_copy(deep=True) if result else None

    async def update_fields(self, result_id: str, **patch: Any) -> MatchResult:
        result = self._results.get(result_id)
        if result is None:
            raise RepositoryError(f"Result {result_id} not found")
        _check_patch(MatchResult, patch)
        updated = result.model_copy(update=patch, deep=True)
        self._results[result_id] = updated
        return updated.model_copy(deep=True)

    async def list_by_job(self, job_id: str) -> List[MatchResult]:
        return [
            result.model_copy(deep=True)
            for result in self._results.values()
            if result.job_id == job_id
        ]

    async def delete_by_job(self, job_id: str) -> int:
        doomed = [rid for rid, result in self._results.items() if result.job_id == job_id]
        for result_id in doomed:
            del self._results[result_id]
        return len(doomed)


async def get_job_with_results(
    job_repo: JobRepository,
    result_repo: ResultRepository,
    job_id: str,
) -> Optional[JobWithResults]:
    """Job record plus its results in creation order, or None if unknown."""
    job = await job_repo.get(job_id)
    if job is None:
        return None
    results = await result_repo.list_by_job(job_id)
    return JobWithResults(job=job, results=results)
