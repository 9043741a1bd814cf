"""
Register re-screening jobs.

A job re-screens every parcel of a register that is still open for screening
(check status below APPROVED and not marked by the partner). Progress is
persisted on a ScreeningJob row so it can be read from any process; the
worker polls ``cancel_requested`` between parcels.

Flow:
    job = start_register_screening(register_id, ScreeningJobKind.WORDS)
    ... run_register_screening task -> run_screening_job(job.handle)
    get_screening_progress(job.handle)
    cancel_register_screening(job.handle)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from celery.exceptions import SoftTimeLimitExceeded
from django.conf import settings
from django.db import transaction

from screening.exceptions import ScreeningAlreadyRunning
from screening.models import (
    ACTIVE_JOB_STATUSES,
    CheckStatus,
    Parcel,
    Register,
    ScreeningJob,
    ScreeningJobKind,
    ScreeningJobStatus,
)
from screening.monitoring import add_screening_breadcrumb, capture_screening_error
from screening.services.parcel_screening import (
    ScreeningContext,
    screen_parcel,
    screen_parcel_codes,
    screen_parcel_words,
)

logger = logging.getLogger(__name__)

SCREEN_FUNCTIONS = {
    ScreeningJobKind.FULL: screen_parcel,
    ScreeningJobKind.WORDS: screen_parcel_words,
    ScreeningJobKind.CODES: screen_parcel_codes,
}

STALE_JOB_ERROR = "Abandoned: did not finish within the job time limit"


@dataclass
class ScreeningProgress:
    """Snapshot of a job's progress."""

    handle: Optional[str]
    total: int
    processed: int
    finished: bool
    error: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def unknown(cls, handle=None) -> "ScreeningProgress":
        return cls(
            handle=str(handle) if handle is not None else None,
            total=-1,
            processed=-1,
            finished=True,
            error=None,
        )

    @classmethod
    def from_job(cls, job: ScreeningJob) -> "ScreeningProgress":
        return cls(
            handle=str(job.handle),
            total=job.total,
            processed=job.processed,
            finished=job.finished,
            error=job.error,
            status=job.status,
        )


def _parse_handle(handle) -> Optional[uuid.UUID]:
    if isinstance(handle, uuid.UUID):
        return handle
    try:
        return uuid.UUID(str(handle))
    except (TypeError, ValueError):
        return None


def screenable_parcels(register_id: int):
    """Parcels of a register that a re-screening touches, in id order."""
    return (
        Parcel.objects
        .filter(register_id=register_id, check_status_id__lt=CheckStatus.APPROVED)
        .exclude(check_status_id=CheckStatus.MARKED_BY_PARTNER)
        .order_by("id")
    )


def start_register_screening(
    register_id: int,
    kind: str = ScreeningJobKind.FULL,
    run_async: bool = True,
) -> ScreeningJob:
    """
    Create a re-screening job for a register and queue it.

    A request for the kind already in flight returns the in-flight job. A job
    left unfinished past SCREENING_JOB_TIME_LIMIT is marked failed and no
    longer blocks the register.

    Args:
        register_id: Register to re-screen
        kind: ScreeningJobKind value
        run_async: Queue the Celery task (False leaves execution to the caller)

    Returns:
        The new or in-flight ScreeningJob

    Raises:
        Register.DoesNotExist: unknown register
        ScreeningAlreadyRunning: a job of another kind is in flight
        ValueError: unknown kind
    """
    kind = ScreeningJobKind(kind)

    with transaction.atomic():
        register = Register.objects.select_for_update().get(pk=register_id)
        active = register.screening_jobs.filter(status__in=ACTIVE_JOB_STATUSES).first()
        if active is not None and active.is_stale(settings.SCREENING_JOB_TIME_LIMIT):
            logger.warning(
                f"Screening {active.handle} of register {register_id} exceeded "
                f"{settings.SCREENING_JOB_TIME_LIMIT}s without finishing, marking it failed"
            )
            active.complete(ScreeningJobStatus.FAILED, error_message=STALE_JOB_ERROR)
            active = None
        if active is not None:
            if active.kind == kind:
                logger.info(f"Register {register_id} already has {kind} screening {active.handle}")
                return active
            raise ScreeningAlreadyRunning(register_id, active.kind, kind)

        job = ScreeningJob.objects.create(register=register, kind=kind)

    logger.info(f"Created {kind} screening {job.handle} for register {register_id}")

    if run_async:
        from screening.tasks import run_register_screening

        run_register_screening.apply_async(args=[str(job.handle)], queue="screening")

    return job


def _cancel_requested(job: ScreeningJob) -> bool:
    return ScreeningJob.objects.filter(pk=job.pk, cancel_requested=True).exists()


def run_screening_job(handle) -> ScreeningJob:
    """
    Execute a pending job in the current process.

    Errors stop the job: the message is stored as the job's error, the
    exception is logged and sent to Sentry, and parcels processed so far keep
    their results.
    """
    with transaction.atomic():
        job = ScreeningJob.objects.select_for_update().get(handle=_parse_handle(handle))
        if job.status != ScreeningJobStatus.PENDING:
            logger.warning(f"Screening {job.handle} is {job.status}, not running it")
            return job
        parcel_ids = list(screenable_parcels(job.register_id).values_list("id", flat=True))
        job.start(total=len(parcel_ids))

    logger.info(
        f"Starting {job.kind} screening {job.handle} of register {job.register_id}: "
        f"{len(parcel_ids)} parcels"
    )
    add_screening_breadcrumb(
        register_id=job.register_id,
        message=f"Screening started ({job.kind})",
        extra_data={"job_handle": str(job.handle), "total": job.total},
    )

    screen = SCREEN_FUNCTIONS[ScreeningJobKind(job.kind)]
    parcel_id = None
    try:
        context = ScreeningContext.load(
            words=job.kind != ScreeningJobKind.CODES,
            codes=job.kind != ScreeningJobKind.WORDS,
        )
        for parcel_id in parcel_ids:
            if _cancel_requested(job):
                job.complete(ScreeningJobStatus.CANCELLED)
                logger.info(f"Screening {job.handle} cancelled after {job.processed}/{job.total}")
                return job

            parcel = Parcel.objects.filter(pk=parcel_id).first()
            if parcel is not None:
                screen(parcel, context)

            job.processed += 1
            job.save(update_fields=["processed"])

    except SoftTimeLimitExceeded as e:
        logger.error(f"Screening {job.handle} hit its time limit at {job.processed}/{job.total} parcels")
        capture_screening_error(error=e, job=job, parcel_id=parcel_id)
        job.complete(
            ScreeningJobStatus.FAILED,
            error_message=f"Time limit exceeded after {job.processed}/{job.total} parcels",
        )
        return job

    except Exception as e:
        logger.exception(f"Screening {job.handle} failed at parcel {parcel_id}: {e}")
        capture_screening_error(error=e, job=job, parcel_id=parcel_id)
        job.complete(ScreeningJobStatus.FAILED, error_message=str(e) or type(e).__name__)
        return job

    job.complete(ScreeningJobStatus.COMPLETED)
    logger.info(
        f"Screening {job.handle} completed: {job.processed}/{job.total} parcels "
        f"in {job.duration_seconds:.1f}s"
    )
    return job


def get_screening_progress(handle) -> ScreeningProgress:
    """Progress of a job; an unknown handle reports total=-1, processed=-1, finished."""
    parsed = _parse_handle(handle)
    if parsed is None:
        return ScreeningProgress.unknown(handle)

    job = ScreeningJob.objects.filter(handle=parsed).first()
    if job is None:
        return ScreeningProgress.unknown(handle)
    return ScreeningProgress.from_job(job)


def cancel_register_screening(handle) -> bool:
    """
    Request cancellation of a job.

    A pending job is cancelled at once; a running job stops before its next
    parcel.

    Returns:
        True if the job was in flight, False for unknown or finished jobs
    """
    parsed = _parse_handle(handle)
    if parsed is None:
        return False

    with transaction.atomic():
        job = (
            ScreeningJob.objects.select_for_update()
            .filter(handle=parsed, status__in=ACTIVE_JOB_STATUSES)
            .first()
        )
        if job is None:
            return False

        job.cancel_requested = True
        job.save(update_fields=["cancel_requested"])
        if job.status == ScreeningJobStatus.PENDING:
            job.complete(ScreeningJobStatus.CANCELLED)

    logger.info(f"Cancellation requested for screening {job.handle}")
    return True
