"""arq worker configuration for matcher jobs.

This module configures the arq worker with:
    - process_matcher_job_task: Run one matcher job start to finish

Shared resources (database engine, catalog HTTP client, LLM client) are
created once in ``on_startup`` and released in ``on_shutdown``.
"""
from typing import Any, Dict

import structlog
from arq.connections import RedisSettings

from sourcing_matcher.config import configure_logging, get_settings
from sourcing_matcher.db.base import create_engine, create_session_factory
from sourcing_matcher.services.catalog_client import CatalogClient
from sourcing_matcher.services.llm import ProductResearcher, get_llm_client
from sourcing_matcher.tasks.matcher_tasks import process_matcher_job_task

settings = get_settings()

# Configure logging
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)


async def on_startup(ctx: Dict[str, Any]) -> None:
    """Open the database engine and the shared HTTP clients."""
    engine = create_engine(settings.database_url)
    ctx["engine"] = engine
    ctx["session_factory"] = create_session_factory(engine)

    catalog_client = CatalogClient()
    ctx["catalog_client"] = await catalog_client.__aenter__()

    llm_client = get_llm_client()
    ctx["llm_client"] = llm_client
    ctx["researcher"] = ProductResearcher(llm_client)
    ctx["llm_available"] = await llm_client.is_available()
    if not ctx["llm_available"]:
        logger.warning(
            "llm_not_available_web_provider_degraded",
            backend=llm_client.settings.backend.value,
            model=llm_client.settings.model,
        )

    logger.info(
        "worker_started",
        queue_name=settings.queue_name,
        max_jobs=settings.max_workers,
        environment=settings.environment,
    )


async def on_shutdown(ctx: Dict[str, Any]) -> None:
    """Close the shared clients and dispose of the engine."""
    catalog_client = ctx.get("catalog_client")
    if catalog_client is not None:
        await catalog_client.__aexit__(None, None, None)

    llm_client = ctx.get("llm_client")
    if llm_client is not None:
        await llm_client.close()

    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()

    logger.info("worker_stopped")


class WorkerSettings:
    """arq worker configuration settings.

    This class is imported by arq CLI: `arq sourcing_matcher.worker.WorkerSettings`

    Registered Tasks:
        - process_matcher_job_task: Process one matcher job

    A job run is not retried: after the first attempt the job has left the
    pending state and a retry would be a no-op.
    """

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.queue_name
    max_jobs = settings.max_workers
    job_timeout = settings.job_timeout
    keep_result = 3600  # Keep results for 1 hour
    max_tries = 1

    functions = [process_matcher_job_task]

    on_startup = on_startup
    on_shutdown = on_shutdown
