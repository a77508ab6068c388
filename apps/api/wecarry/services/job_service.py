"""Job service - queueing and bookkeeping for background jobs run by wecarry.worker."""

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wecarry.db.enums import JobStatus, JobType
from wecarry.db.models import Job
from wecarry.db.types import utcnow

logger = logging.getLogger(__name__)

# Wait before attempt n+1 after a failure; the last entry repeats
RETRY_DELAYS = (timedelta(seconds=30), timedelta(minutes=5))


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
) -> Job:
    """
    Queue a job. It runs on the worker's next poll at or after run_at.

    A duplicate idempotency_key raises IntegrityError; use schedule_job_once
    when a duplicate is expected.
    """
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING.value,
        idempotency_key=idempotency_key,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def schedule_job_once(
    db: Session,
    job_type: JobType,
    payload: dict,
    idempotency_key: str,
    run_at: datetime | None = None,
) -> Job | None:
    """Queue a job unless one with idempotency_key exists. Returns None for a duplicate."""
    try:
        return schedule_job(db, job_type, payload, run_at=run_at, idempotency_key=idempotency_key)
    except IntegrityError:
        db.rollback()
        logger.debug("Job %s already queued", idempotency_key)
        return None


def submit_delayed(
    db_factory: Callable[[], Session],
    job_type: JobType,
    delay: timedelta,
    payload: dict,
) -> Job | None:
    """
    Schedule a job to run after delay, in its own session.

    Called from event listeners, so it never raises: failures are logged
    and None is returned.
    """
    try:
        db = db_factory()
    except Exception:
        logger.exception("Could not open session to submit %s job", job_type.value)
        return None
    try:
        return schedule_job(db, job_type, payload, run_at=utcnow() + delay)
    except Exception:
        db.rollback()
        logger.exception("Failed to submit delayed %s job", job_type.value)
        return None
    finally:
        db.close()


def get_pending_jobs(db: Session, limit: int = 10) -> list[Job]:
    """Pending jobs with run_at in the past, oldest run_at first."""
    return (
        db.query(Job)
        .filter(Job.status == JobStatus.PENDING.value, Job.run_at <= utcnow())
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def get_job(db: Session, job_id: UUID) -> Job | None:
    return db.get(Job, job_id)


def list_jobs(
    db: Session,
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
) -> list[Job]:
    """List jobs with optional filters, newest first."""
    query = db.query(Job)
    if status:
        query = query.filter(Job.status == status.value)
    if job_type:
        query = query.filter(Job.job_type == job_type.value)
    return query.order_by(Job.created_at.desc()).limit(limit).all()


def mark_job_running(db: Session, job: Job) -> Job:
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    job.status = JobStatus.COMPLETED.value
    job.completed_at = utcnow()
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Record a failed attempt.

    The job goes back to pending with run_at pushed out by RETRY_DELAYS until
    it has used max_attempts, then it is left as failed.
    """
    job.last_error = error
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
        job.run_at = utcnow() + RETRY_DELAYS[min(job.attempts, len(RETRY_DELAYS)) - 1]
    else:
        job.status = JobStatus.FAILED.value
        logger.warning("Job %s (%s) gave up after %d attempts", job.id, job.job_type, job.attempts)
    db.commit()
    db.refresh(job)
    return job
