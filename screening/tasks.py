"""
Celery tasks for parcel screening.

- run_register_screening: worker task executing a register re-screening job
"""

import logging
from typing import Dict, Any

from celery import shared_task
from django.conf import settings

from screening.services.register_screening import run_screening_job

logger = logging.getLogger(__name__)


@shared_task(
    name="screening.tasks.run_register_screening",
    soft_time_limit=settings.SCREENING_JOB_SOFT_TIME_LIMIT,
    time_limit=settings.SCREENING_JOB_TIME_LIMIT,
)
def run_register_screening(job_handle: str) -> Dict[str, Any]:
    """
    Worker task to re-screen a register.

    Args:
        job_handle: UUID of the ScreeningJob created by start_register_screening

    Returns:
        Dict with the job's terminal state
    """
    logger.info(f"Running register screening {job_handle}")

    job = run_screening_job(job_handle)

    return {
        "handle": str(job.handle),
        "register_id": job.register_id,
        "status": job.status,
        "processed": job.processed,
        "total": job.total,
        "error": job.error,
    }
