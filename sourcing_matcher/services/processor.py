"""Job processor: the row-by-row matching state machine.

Job states:
    - pending → processing before the first row
    - processing → completed after the last row, even if rows errored
    - processing → failed on configuration errors (no providers), on any
      exception escaping a row, or when a provider rate limit stops the run

Rows are processed strictly one at a time and providers within a row one
after another, with fixed pauses between calls, to stay inside upstream
rate limits. Per row:

    row → ProductQuery → providers → match score → landed cost
        → optional max shipping cost filter → ranking → persisted result
"""
import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from sourcing_matcher.config import MatcherSettings, get_matcher_settings
from sourcing_matcher.errors import (
    NameResolutionError,
    OrchestrationError,
    ProviderRateLimitError,
    ScoringError,
)
from sourcing_matcher.models.jobs import (
    JobProgress,
    JobStatus,
    MatcherJob,
    MatchResult,
    ResultStatus,
    RowData,
    SubmitMatcherJobRequest,
)
from sourcing_matcher.models.matching import ProductQuery, ProviderResult, SearchCriteria
from sourcing_matcher.repositories import JobRepository, ResultRepository
from sourcing_matcher.services.costing import calculate_landed_cost
from sourcing_matcher.services.matching import find_best_match, rank_matches, score_candidates
from sourcing_matcher.services.providers.base import SearchProvider
from sourcing_matcher.services.providers.registry import ProviderRegistry
from sourcing_matcher.services.rows import build_product_query
from sourcing_matcher.services.scoring import (
    calculate_ranking_score,
    calculate_reliability_score,
)
from sourcing_matcher.services.sku import extract_sku_from_result

logger = structlog.get_logger(__name__)

RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded for {display_name}. "
    "Please try again later or reduce the number of products."
)

Sleep = Callable[[float], Awaitable[None]]


# ============================================================================
# Observability Metrics Logging
# ============================================================================

def emit_metric(metric_name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
    """Emit a metric event for observability.

    Args:
        metric_name: Name of the metric (e.g., "matcher_rows_processed_total")
        value: Numeric value of the metric
        labels: Optional labels/tags for the metric
    """
    labels = labels or {}
    logger.info(
        "metric",
        metric_name=metric_name,
        metric_value=value,
        **labels,
    )


@dataclass
class JobRunSummary:
    """Counters for one ``JobProcessor.process`` run."""
    job_id: str
    status: JobStatus
    total: int = 0
    processed: int = 0
    found: int = 0
    not_found: int = 0
    errors: int = 0
    aborted: bool = False
    skipped: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def record(self, status: ResultStatus) -> None:
        if status == ResultStatus.FOUND:
            self.found += 1
        elif status == ResultStatus.NOT_FOUND:
            self.not_found += 1
        elif status == ResultStatus.ERROR:
            self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class RowEvaluation:
    """Ranked candidates of one row and the figures of the best one."""
    matches: List[ProviderResult] = field(default_factory=list)
    best_match: Optional[ProviderResult] = None
    sku: Optional[str] = None
    landed_cost_value: Optional[float] = None
    landed_cost_currency: Optional[str] = None
    eta_days: Optional[int] = None

    @property
    def status(self) -> ResultStatus:
        return ResultStatus.FOUND if self.matches else ResultStatus.NOT_FOUND

    def to_result_fields(self) -> Dict[str, Any]:
        best = self.best_match
        return {
            "matches": self.matches,
            "best_match_id": best.product_id if best else None,
            "sku": self.sku,
            "landed_cost_value": self.landed_cost_value,
            "landed_cost_currency": self.landed_cost_currency,
            "eta_days": self.eta_days,
            "reliability_score": best.reliability_score if best else None,
            "ranking_score": best.ranking_score if best else None,
            "status": self.status,
            "error": None,
        }


@dataclass
class RowOutcome:
    status: ResultStatus
    error: Optional[str] = None
    rate_limited: bool = False


def evaluate_candidates(
    query: ProductQuery,
    candidates: List[ProviderResult],
    criteria: SearchCriteria,
) -> RowEvaluation:
    """Score, cost, filter and rank the candidates of one row.

    Raises:
        ScoringError: If any computation fails for any candidate
    """
    try:
        costed = [
            scored.model_copy(update={"landed_cost": calculate_landed_cost(scored, criteria)})
            for scored in score_candidates(query, candidates, criteria)
        ]

        if criteria.max_shipping_cost is not None:
            costed = [
                c for c in costed
                if c.landed_cost is None
                or c.landed_cost.shipping_cost_usd <= criteria.max_shipping_cost
            ]

        ranked = rank_matches(
            [
                c.model_copy(update={
                    "ranking_score": calculate_ranking_score(c, query),
                    "reliability_score": calculate_reliability_score(c),
                })
                for c in costed
            ],
            key="ranking_score",
        )
    except ScoringError:
        raise
    except Exception as e:
        raise ScoringError(str(e) or type(e).__name__) from e

    best = find_best_match(ranked, key="ranking_score")
    if best is None:
        return RowEvaluation()

    landed_cost = best.landed_cost
    return RowEvaluation(
        matches=ranked,
        best_match=best,
        sku=best.sku or extract_sku_from_result(best),
        landed_cost_value=landed_cost.total_landed_cost_usd if landed_cost else None,
        landed_cost_currency=landed_cost.currency if landed_cost else None,
        eta_days=(
            landed_cost.eta_days if landed_cost and landed_cost.eta_days
            else best.estimated_delivery_days
        ),
    )


class JobProcessor:
    """Runs one matcher job start to finish.

    Usage:
        processor = JobProcessor(job_repo, result_repo, registry)
        summary = await processor.process(job_id)
    """

    def __init__(
        self,
        job_repo: JobRepository,
        result_repo: ResultRepository,
        registry: ProviderRegistry,
        settings: Optional[MatcherSettings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.job_repo = job_repo
        self.result_repo = result_repo
        self.registry = registry
        self.settings = settings or get_matcher_settings()
        self._sleep = sleep

    async def process(self, job_id: str) -> JobRunSummary:
        """Process every row of a pending job.

        Returns:
            Summary of the run; a no-op summary when the job is not pending

        Raises:
            OrchestrationError: If the job does not exist or no providers resolve
            Exception: Anything escaping the per-row boundary, after the job
                has been marked failed
        """
        log = logger.bind(job_id=job_id)

        job = await self.job_repo.get(job_id)
        if job is None:
            raise OrchestrationError(f"Job {job_id} not found")

        if job.status != JobStatus.PENDING:
            log.info("job_not_pending", status=job.status.value)
            return JobRunSummary(
                job_id=job_id,
                status=job.status,
                total=job.progress.total,
                processed=job.progress.processed,
                skipped=True,
            )

        total = len(job.sheet_data)
        summary = JobRunSummary(job_id=job_id, status=JobStatus.PROCESSING, total=total)
        start_time = time.perf_counter()

        await self.job_repo.update_fields(
            job_id,
            status=JobStatus.PROCESSING,
            progress=JobProgress(processed=0, total=total),
            error=None,
        )
        log.info("job_processing_started", rows=total, providers=job.providers)

        try:
            providers = self.registry.resolve(job.providers)
            if not providers:
                requested = ", ".join(job.providers) or "none"
                raise OrchestrationError(f"No valid providers configured. Requested: {requested}")

            for index, row in enumerate(job.sheet_data):
                outcome = await self._process_row(job, index, row, providers)
                summary.record(outcome.status)

                if outcome.rate_limited:
                    summary.aborted = True
                    summary.error = outcome.error
                    summary.status = JobStatus.FAILED
                    await self.job_repo.update_fields(
                        job_id,
                        status=JobStatus.FAILED,
                        error=outcome.error,
                    )
                    log.warning(
                        "job_aborted_rate_limited",
                        row_index=index,
                        processed=summary.processed,
                        total=total,
                    )
                    return self._finish(summary, start_time)

                summary.processed = index + 1
                await self.job_repo.update_fields(
                    job_id,
                    progress=JobProgress(processed=index + 1, total=total),
                )

                if index < total - 1:
                    await self._sleep(self.settings.inter_row_delay_seconds)

            await self.job_repo.update_fields(
                job_id,
                status=JobStatus.COMPLETED,
                progress=JobProgress(processed=total, total=total),
            )
            summary.status = JobStatus.COMPLETED
            log.info(
                "job_processing_completed",
                found=summary.found,
                not_found=summary.not_found,
                errors=summary.errors,
            )
            return self._finish(summary, start_time)

        except Exception as e:
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            log.error("job_processing_failed", error=message, error_type=type(e).__name__)
            await self.job_repo.update_fields(job_id, status=JobStatus.FAILED, error=message)
            summary.status = JobStatus.FAILED
            summary.error = message
            self._finish(summary, start_time)
            raise

    def _finish(self, summary: JobRunSummary, start_time: float) -> JobRunSummary:
        summary.duration_seconds = time.perf_counter() - start_time
        labels = {"job_id": summary.job_id, "status": summary.status.value}
        emit_metric("matcher_rows_processed_total", summary.processed, labels)
        emit_metric("matcher_rows_found_total", summary.found, labels)
        emit_metric("matcher_rows_error_total", summary.errors, labels)
        emit_metric("matcher_job_duration_seconds", summary.duration_seconds, labels)
        return summary

    async def _process_row(
        self,
        job: MatcherJob,
        index: int,
        row: RowData,
        providers: List[SearchProvider],
    ) -> RowOutcome:
        log = logger.bind(job_id=job.id, row_index=index)

        try:
            query = build_product_query(row)
        except NameResolutionError as e:
            await self.result_repo.create(MatchResult(
                job_id=job.id,
                row_index=index,
                original_product=row,
                status=ResultStatus.ERROR,
                error=e.message,
            ))
            log.warning("row_name_not_found", columns=e.columns)
            return RowOutcome(ResultStatus.ERROR, error=e.message)

        result = await self.result_repo.create(MatchResult(
            job_id=job.id,
            row_index=index,
            original_product=row,
            status=ResultStatus.SEARCHING,
        ))

        candidates: List[ProviderResult] = []
        for position, provider in enumerate(providers):
            try:
                candidates.extend(await provider.search(query, job.criteria))
            except ProviderRateLimitError as e:
                message = RATE_LIMIT_MESSAGE.format(display_name=provider.display_name)
                log.warning(
                    "provider_rate_limited",
                    provider=provider.provider_id,
                    retry_after=e.retry_after,
                )
                await self.result_repo.update_fields(
                    result.id,
                    status=ResultStatus.ERROR,
                    error=message,
                )
                return RowOutcome(ResultStatus.ERROR, error=message, rate_limited=True)
            except Exception as e:
                log.warning(
                    "provider_search_failed",
                    provider=provider.provider_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if position < len(providers) - 1:
                await self._sleep(self.settings.inter_provider_delay_seconds)

        try:
            evaluation = evaluate_candidates(query, candidates, job.criteria)
        except ScoringError as e:
            log.error("row_scoring_failed", error=e.message)
            await self.result_repo.update_fields(
                result.id,
                status=ResultStatus.ERROR,
                error=e.message,
            )
            return RowOutcome(ResultStatus.ERROR, error=e.message)

        await self.result_repo.update_fields(result.id, **evaluation.to_result_fields())
        log.info(
            "row_processed",
            product=query.name,
            candidates=len(candidates),
            matches=len(evaluation.matches),
            best_match_id=evaluation.best_match.product_id if evaluation.best_match else None,
            ranking_score=evaluation.best_match.ranking_score if evaluation.best_match else None,
            sku=evaluation.sku,
        )
        return RowOutcome(evaluation.status)


async def submit_job(job_repo: JobRepository, request: SubmitMatcherJobRequest) -> MatcherJob:
    """Create a pending job with ``progress={0, len(rows)}``."""
    job = MatcherJob(
        name=request.name,
        sheet_data=request.rows,
        providers=request.providers,
        criteria=request.criteria,
        status=JobStatus.PENDING,
        progress=JobProgress(processed=0, total=len(request.rows)),
    )
    created = await job_repo.create(job)
    logger.info("job_submitted", job_id=created.id, rows=len(request.rows), providers=request.providers)
    return created


async def retry_job(
    job_repo: JobRepository,
    result_repo: ResultRepository,
    job_id: str,
) -> MatcherJob:
    """Put a finished job back to pending so it can be processed again.

    Clears ``error``, resets progress to ``{0, len(sheet_data)}`` and removes
    the results of the previous run.

    Raises:
        OrchestrationError: If the job does not exist or is still pending
            or processing
    """
    job = await job_repo.get(job_id)
    if job is None:
        raise OrchestrationError(f"Job {job_id} not found")
    if not job.status.is_terminal:
        raise OrchestrationError(f"Job {job_id} is {job.status.value} and cannot be retried")

    removed = await result_repo.delete_by_job(job_id)
    reset = await job_repo.update_fields(
        job_id,
        status=JobStatus.PENDING,
        error=None,
        progress=JobProgress(processed=0, total=len(job.sheet_data)),
    )
    logger.info(
        "job_reset_for_retry",
        job_id=job_id,
        previous_status=job.status.value,
        results_removed=removed,
    )
    return reset


async def delete_job(
    job_repo: JobRepository,
    result_repo: ResultRepository,
    job_id: str,
) -> None:
    """Remove a job together with its results.

    Raises:
        OrchestrationError: If the job does not exist
    """
    if await job_repo.get(job_id) is None:
        raise OrchestrationError(f"Job {job_id} not found")
    removed = await result_repo.delete_by_job(job_id)
    await job_repo.delete(job_id)
    logger.info("job_deleted", job_id=job_id, results_removed=removed)


async def list_jobs(job_repo: JobRepository) -> List[MatcherJob]:
    """Job history, newest first."""
    return await job_repo.list()
