"""Queue task definitions for matcher jobs.

This module contains arq task functions for:
    - process_matcher_job_task: Run one matcher job start to finish
"""
from sourcing_matcher.tasks.matcher_tasks import (
    process_matcher_job_task,
    enqueue_matcher_job,
    retry_matcher_job,
)

__all__ = [
    "process_matcher_job_task",
    "enqueue_matcher_job",
    "retry_matcher_job",
]
