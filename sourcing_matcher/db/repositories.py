"""SQLAlchemy implementations of the job and result repositories."""
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sourcing_matcher.db.base import utcnow
from sourcing_matcher.db.models import MatcherJobRecord, MatchResultRecord
from sourcing_matcher.errors import RepositoryError
from sourcing_matcher.models.jobs import (
    JobProgress,
    JobStatus,
    MatcherJob,
    MatchResult,
    ResultStatus,
)
from sourcing_matcher.models.matching import ProviderResult, SearchCriteria
from sourcing_matcher.repositories import JobRepository, ResultRepository

logger = structlog.get_logger(__name__)


def _parse_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def to_column_value(value: Any) -> Any:
    """Convert a domain value to its JSON-column / scalar-column form."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, ProviderResult):
        return value.to_storage()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [to_column_value(item) for item in value]
    return value


def _check_patch(record_cls, patch: Dict[str, Any]) -> None:
    columns = set(record_cls.__table__.columns.keys())
    unknown = set(patch) - columns
    if unknown:
        raise RepositoryError(
            f"Unknown {record_cls.__tablename__} fields: {', '.join(sorted(unknown))}"
        )


def job_to_record(job: MatcherJob) -> MatcherJobRecord:
    return MatcherJobRecord(
        id=uuid.UUID(job.id),
        name=job.name,
        sheet_data=job.sheet_data,
        providers=job.providers,
        criteria=to_column_value(job.criteria),
        status=job.status.value,
        progress=job.progress.model_dump(),
        error=job.error,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def record_to_job(record: MatcherJobRecord) -> MatcherJob:
    return MatcherJob(
        id=str(record.id),
        name=record.name,
        sheet_data=record.sheet_data or [],
        providers=record.providers or [],
        criteria=SearchCriteria.model_validate(record.criteria or {}),
        status=JobStatus(record.status),
        progress=JobProgress.model_validate(record.progress or {}),
        error=record.error,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def result_to_record(result: MatchResult) -> MatchResultRecord:
    return MatchResultRecord(
        id=uuid.UUID(result.id),
        job_id=uuid.UUID(result.job_id),
        row_index=result.row_index,
        original_product=result.original_product,
        matches=to_column_value(result.matches),
        best_match_id=result.best_match_id,
        status=result.status.value,
        error=result.error,
        sku=result.sku,
        landed_cost_value=result.landed_cost_value,
        landed_cost_currency=result.landed_cost_currency,
        eta_days=result.eta_days,
        reliability_score=result.reliability_score,
        ranking_score=result.ranking_score,
        created_at=result.created_at,
    )


def record_to_result(record: MatchResultRecord) -> MatchResult:
    return MatchResult(
        id=str(record.id),
        job_id=str(record.job_id),
        row_index=record.row_index,
        original_product=record.original_product or {},
        matches=[ProviderResult.model_validate(match) for match in record.matches or []],
        best_match_id=record.best_match_id,
        status=ResultStatus(record.status),
        error=record.error,
        sku=record.sku,
        landed_cost_value=record.landed_cost_value,
        landed_cost_currency=record.landed_cost_currency,
        eta_days=record.eta_days,
        reliability_score=record.reliability_score,
        ranking_score=record.ranking_score,
        created_at=record.created_at,
    )


class SqlJobRepository(JobRepository):
    """Job repository over the ``product_matcher_jobs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, job: MatcherJob) -> MatcherJob:
        try:
            async with self.session_factory() as session:
                record = job_to_record(job)
                session.add(record)
                await session.commit()
                return record_to_job(record)
        except SQLAlchemyError as e:
            logger.error("job_create_failed", job_id=job.id, error=str(e))
            raise RepositoryError(f"Failed to create job {job.id}: {e}") from e

    async def get(self, job_id: str) -> Optional[MatcherJob]:
        record_id = _parse_id(job_id)
        if record_id is None:
            return None
        try:
            async with self.session_factory() as session:
                record = await session.get(MatcherJobRecord, record_id)
                return record_to_job(record) if record else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load job {job_id}: {e}") from e

    async def update_fields(self, job_id: str, **patch: Any) -> MatcherJob:
        _check_patch(MatcherJobRecord, patch)
        record_id = _parse_id(job_id)
        if record_id is None:
            raise RepositoryError(f"Job {job_id} not found")
        try:
            async with self.session_factory() as session:
                record = await session.get(MatcherJobRecord, record_id)
                if record is None:
                    raise RepositoryError(f"Job {job_id} not found")
                for field, value in patch.items():
                    setattr(record, field, to_column_value(value))
                record.updated_at = patch.get("updated_at", utcnow())
                await session.commit()
                return record_to_job(record)
        except SQLAlchemyError as e:
            logger.error("job_update_failed", job_id=job_id, fields=list(patch), error=str(e))
            raise RepositoryError(f"Failed to update job {job_id}: {e}") from e

    async def delete(self, job_id: str) -> bool:
        record_id = _parse_id(job_id)
        if record_id is None:
            return False
        try:
            async with self.session_factory() as session:
                record = await session.get(MatcherJobRecord, record_id)
                if record is None:
                    return False
                await session.delete(record)
                await session.commit()
                return True
        except SQLAlchemyError as e:
            logger.error("job_delete_failed", job_id=job_id, error=str(e))
            raise RepositoryError(f"Failed to delete job {job_id}: {e}") from e

    async def list(self) -> List[MatcherJob]:
        try:
            async with self.session_factory() as session:
                rows = await session.execute(
                    select(MatcherJobRecord).order_by(MatcherJobRecord.created_at.desc())
                )
                return [record_to_job(record) for record in rows.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list jobs: {e}") from e


class SqlResultRepository(ResultRepository):
    """Result repository over the ``product_match_results`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, result: MatchResult) -> MatchResult:
        try:
            async with self.session_factory() as session:
                record = result_to_record(result)
                session.add(record)
                await session.commit()
                return record_to_result(record)
        except SQLAlchemyError as e:
            logger.error("result_create_failed", job_id=result.job_id, error=str(e))
            raise RepositoryError(f"Failed to create result for job {result.job_id}: {e}") from e

    async def get(self, result_id: str) -> Optional[MatchResult]:
        record_id = _parse_id(result_id)
        if record_id is None:
            return None
        try:
            async with self.session_factory() as session:
                record = await session.get(MatchResultRecord, record_id)
                return record_to_result(record) if record else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load result {result_id}: {e}") from e

    async def update_fields(self, result_id: str, **patch: Any) -> MatchResult:
        _check_patch(MatchResultRecord, patch)
        record_id = _parse_id(result_id)
        if record_id is None:
            raise RepositoryError(f"Result {result_id} not found")
        try:
            async with self.session_factory() as session:
                record = await session.get(MatchResultRecord, record_id)
                if record is None:
                    raise RepositoryError(f"Result {result_id} not found")
                for field, value in patch.items():
                    setattr(record, field, to_column_value(value))
                await session.commit()
                return record_to_result(record)
        except SQLAlchemyError as e:
            logger.error("result_update_failed", result_id=result_id, error=str(e))
            raise RepositoryError(f"Failed to update result {result_id}: {e}") from e

    async def list_by_job(self, job_id: str) -> List[MatchResult]:
        record_id = _parse_id(job_id)
        if record_id is None:
            return []
        try:
            async with self.session_factory() as session:
                rows = await session.execute(
                    select(MatchResultRecord)
                    .where(MatchResultRecord.job_id == record_id)
                    .order_by(MatchResultRecord.created_at, MatchResultRecord.row_index)
                )
                return [record_to_result(record) for record in rows.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list results for job {job_id}: {e}") from e

    async def delete_by_job(self, job_id: str) -> int:
        record_id = _parse_id(job_id)
        if record_id is None:
            return 0
        try:
            async with self.session_factory() as session:
                outcome = await session.execute(
                    delete(MatchResultRecord).where(MatchResultRecord.job_id == record_id)
                )
                await session.commit()
                return outcome.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("result_delete_failed", job_id=job_id, error=str(e))
            raise RepositoryError(f"Failed to delete results for job {job_id}: {e}") from e
