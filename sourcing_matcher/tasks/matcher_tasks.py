"""Queue tasks for matcher jobs.

Each job is processed start-to-finish by one worker task; the pending-state
guard in the processor makes a duplicate dispatch a no-op.
"""
from typing import Any, Dict

import structlog
from arq.connections import ArqRedis

from sourcing_matcher.config import get_matcher_settings, get_settings
from sourcing_matcher.db.repositories import SqlJobRepository, SqlResultRepository
from sourcing_matcher.errors import OrchestrationError
from sourcing_matcher.models.jobs import MatcherJob, SubmitMatcherJobRequest
from sourcing_matcher.repositories import JobRepository, ResultRepository
from sourcing_matcher.services.processor import JobProcessor, retry_job, submit_job
from sourcing_matcher.services.providers.registry import build_default_registry

logger = structlog.get_logger(__name__)

TASK_NAME = "process_matcher_job_task"


async def process_matcher_job_task(ctx: Dict[str, Any], job_id: str) -> Dict[str, Any]:
    """Run one matcher job.

    Args:
        ctx: Worker context holding ``session_factory``, ``catalog_client``
            and ``researcher`` (set up in ``on_startup``)
        job_id: Job to process

    Returns:
        The run summary as a dictionary

    Note:
        Orchestration failures are already recorded on the job, so they are
        reported in the returned dictionary instead of failing the arq job.
    """
    log = logger.bind(job_id=job_id, job_try=ctx.get("job_try", 1))
    log.info("matcher_job_task_started")

    session_factory = ctx["session_factory"]
    registry = build_default_registry(
        ctx["catalog_client"],
        ctx["researcher"],
        settings=get_matcher_settings(),
    )
    processor = JobProcessor(
        SqlJobRepository(session_factory),
        SqlResultRepository(session_factory),
        registry,
        settings=get_matcher_settings(),
    )

    try:
        summary = await processor.process(job_id)
    except OrchestrationError as e:
        log.error("matcher_job_task_failed", error=e.message)
        return {"job_id": job_id, "status": "failed", "error": e.message}

    log.info("matcher_job_task_completed", **summary.to_dict())
    return summary.to_dict()


async def enqueue_matcher_job(
    redis: ArqRedis,
    job_repo: JobRepository,
    request: SubmitMatcherJobRequest,
) -> MatcherJob:
    """Persist a pending job and enqueue its processing task.

    The arq job id is derived from the matcher job id so the same job is
    never queued twice.
    """
    job = await submit_job(job_repo, request)
    await redis.enqueue_job(
        TASK_NAME,
        job.id,
        _job_id=f"matcher-{job.id}",
        _queue_name=get_settings().queue_name,
    )
    logger.info("matcher_job_enqueued", job_id=job.id, rows=len(request.rows))
    return job


async def retry_matcher_job(
    redis: ArqRedis,
    job_repo: JobRepository,
    result_repo: ResultRepository,
    job_id: str,
) -> MatcherJob:
    """Reset a finished job to pending and enqueue it again.

    arq keeps the outcome of ``matcher-{id}`` for ``keep_result`` seconds and
    refuses a new job under that id, so each retry gets its own suffix.
    """
    job = await retry_job(job_repo, result_repo, job_id)
    retry_tag = int(job.updated_at.timestamp() * 1000)
    await redis.enqueue_job(
        TASK_NAME,
        job.id,
        _job_id=f"matcher-{job.id}-retry-{retry_tag}",
        _queue_name=get_settings().queue_name,
    )
    logger.info("matcher_job_retry_enqueued", job_id=job.id, rows=job.progress.total)
    return job
