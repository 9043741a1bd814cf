"""
Sentry integration for register re-screening jobs.

Sentry itself is initialised in settings/base.py when SENTRY_DSN is set.
Without a DSN the SDK calls below are no-ops.

Usage:
    from screening.monitoring import capture_screening_error

    try:
        screen_parcel(parcel, context)
    except Exception as e:
        capture_screening_error(error=e, job=job, parcel_id=parcel.id)
        raise
"""

import logging
from typing import Dict, Any, Optional

import sentry_sdk

logger = logging.getLogger(__name__)


def add_screening_breadcrumb(
    register_id: int,
    message: str = "Screening operation",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for screening context.

    Args:
        register_id: Register being screened
        message: Description of the operation
        level: Log level (info, warning, error)
        extra_data: Additional context data
    """
    breadcrumb_data = {"register_id": register_id}
    if extra_data:
        breadcrumb_data.update(extra_data)

    try:
        sentry_sdk.add_breadcrumb(
            category="screening",
            message=message,
            level=level,
            data=breadcrumb_data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_screening_error(
    error: Exception,
    job=None,
    parcel_id: Optional[int] = None,
) -> None:
    """
    Capture a re-screening failure to Sentry with job context.

    Args:
        error: The exception that occurred
        job: ScreeningJob instance (optional)
        parcel_id: Parcel being screened when the error occurred
    """
    register_id = job.register_id if job else None

    add_screening_breadcrumb(
        register_id=register_id,
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data={"parcel_id": parcel_id} if parcel_id else None,
    )

    try:
        with sentry_sdk.new_scope() as scope:
            if job is not None:
                scope.set_tag("screening.kind", job.kind)
                scope.set_extra("job_handle", str(job.handle))
                scope.set_extra("register_id", register_id)
                scope.set_extra("processed", job.processed)
                scope.set_extra("total", job.total)
            if parcel_id:
                scope.set_extra("parcel_id", parcel_id)

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")
