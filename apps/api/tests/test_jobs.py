"""Tests for the job queue, handler registry and worker loop."""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from wecarry import worker
from wecarry.core.config import settings
from wecarry.db.enums import JobStatus, JobType
from wecarry.db.models import File
from wecarry.db.session import SessionLocal
from wecarry.db.types import utcnow
from wecarry.jobs.registry import JOB_HANDLERS, resolve_job_handler
from wecarry.services import file_service, job_service


# =============================================================================
# Job service
# =============================================================================

def test_pending_jobs_are_due_and_ordered(db):
    later = job_service.schedule_job(db, JobType.FILE_CLEANUP, {}, run_at=utcnow() - timedelta(minutes=1))
    earlier = job_service.schedule_job(db, JobType.TOKEN_CLEANUP, {}, run_at=utcnow() - timedelta(minutes=5))
    job_service.schedule_job(db, JobType.FILE_CLEANUP, {}, run_at=utcnow() + timedelta(hours=1))

    pending = job_service.get_pending_jobs(db, limit=10)
    assert [j.id for j in pending] == [earlier.id, later.id]
    assert len(job_service.get_pending_jobs(db, limit=1)) == 1


def test_list_jobs_filters(db):
    job_service.schedule_job(db, JobType.FILE_CLEANUP, {})
    job = job_service.schedule_job(db, JobType.TOKEN_CLEANUP, {})
    job_service.mark_job_running(db, job)

    assert len(job_service.list_jobs(db)) == 2
    assert [j.id for j in job_service.list_jobs(db, status=JobStatus.RUNNING)] == [job.id]
    assert [j.job_type for j in job_service.list_jobs(db, job_type=JobType.FILE_CLEANUP)] == [
        JobType.FILE_CLEANUP.value
    ]
    assert job_service.get_job(db, job.id).attempts == 1


def test_failed_job_retries_until_max_attempts(db):
    job = job_service.schedule_job(db, JobType.FILE_CLEANUP, {})

    for attempt in range(1, job.max_attempts + 1):
        job_service.mark_job_running(db, job)
        job_service.mark_job_failed(db, job, f"boom {attempt}")
        expected = JobStatus.FAILED if attempt == job.max_attempts else JobStatus.PENDING
        assert job.status == expected.value

    assert job.last_error == f"boom {job.max_attempts}"


def test_completed_job_clears_error(db):
    job = job_service.schedule_job(db, JobType.FILE_CLEANUP, {})
    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "flaky")
    job_service.mark_job_completed(db, job)

    assert job.status == JobStatus.COMPLETED.value
    assert job.last_error is None
    assert job.completed_at is not None


def test_failed_job_waits_before_retry(db):
    job = job_service.schedule_job(db, JobType.FILE_CLEANUP, {})
    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "flaky")

    assert job.run_at > utcnow() + timedelta(seconds=20)
    assert job_service.get_pending_jobs(db) == []


def test_schedule_job_once_skips_duplicates(db):
    first = job_service.schedule_job_once(db, JobType.TOKEN_CLEANUP, {}, "token_cleanup:today")
    again = job_service.schedule_job_once(db, JobType.TOKEN_CLEANUP, {}, "token_cleanup:today")

    assert first is not None
    assert again is None
    assert len(job_service.list_jobs(db)) == 1


def test_submit_delayed_uses_own_session(db):
    job = job_service.submit_delayed(
        SessionLocal, JobType.THREAD_MESSAGE, timedelta(minutes=10), {"message_id": 1}
    )

    assert job is not None
    stored = job_service.get_job(db, job.id)
    assert stored.payload == {"message_id": 1}
    assert stored.run_at > utcnow() + timedelta(minutes=9)


def test_submit_delayed_never_raises(db, caplog):
    def broken_factory():
        raise RuntimeError("pool exhausted")

    assert job_service.submit_delayed(broken_factory, JobType.THREAD_MESSAGE, timedelta(0), {}) is None
    assert "Could not open session" in caplog.text


# =============================================================================
# Registry
# =============================================================================

def test_every_job_type_has_a_handler():
    for job_type in JobType:
        assert callable(resolve_job_handler(job_type.value))
    assert set(JOB_HANDLERS) == {job_type.value for job_type in JobType}


def test_job_registry_unknown_raises():
    with pytest.raises(ValueError):
        resolve_job_handler("nope")


async def test_process_job_uses_registry(monkeypatch):
    calls: dict[str, str] = {}

    async def stub_handler(_db, job):
        calls["job_type"] = job.job_type

    def stub_resolver(job_type: str):
        calls["resolved"] = job_type
        return stub_handler

    monkeypatch.setattr(worker, "resolve_job_handler", stub_resolver)
    job = SimpleNamespace(id="job-id", job_type=JobType.TOKEN_CLEANUP.value, attempts=0, payload={})

    await worker.process_job(None, job)

    assert calls == {"resolved": JobType.TOKEN_CLEANUP.value, "job_type": JobType.TOKEN_CLEANUP.value}


# =============================================================================
# Worker
# =============================================================================

def test_schedule_daily_jobs_once_per_day(db):
    today = datetime(2030, 5, 1, 3, 0, tzinfo=timezone.utc)

    assert worker.schedule_daily_jobs(db, today) == 2
    assert worker.schedule_daily_jobs(db, today + timedelta(hours=5)) == 0
    assert worker.schedule_daily_jobs(db, today + timedelta(days=1)) == 2

    keys = sorted(j.idempotency_key for j in job_service.list_jobs(db))
    assert keys == [
        "file_cleanup:2030-05-01",
        "file_cleanup:2030-05-02",
        "token_cleanup:2030-05-01",
        "token_cleanup:2030-05-02",
    ]


async def test_run_pending_jobs_completes_maintenance(db):
    worker.schedule_daily_jobs(db)

    assert await worker.run_pending_jobs(db) == 2
    statuses = {j.status for j in job_service.list_jobs(db)}
    assert statuses == {JobStatus.COMPLETED.value}


async def test_run_pending_jobs_records_failures(db, monkeypatch):
    async def failing_handler(_db, _job):
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(worker, "resolve_job_handler", lambda _job_type: failing_handler)
    job = job_service.schedule_job(db, JobType.FILE_CLEANUP, {})

    assert await worker.run_pending_jobs(db) == 0

    db.refresh(job)
    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 1
    assert job.last_error == "storage unavailable"


async def test_file_cleanup_job_removes_old_files(db, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path), raising=False)
    file = file_service.store_file(db, "old.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 8)
    file.updated_at = utcnow() - timedelta(weeks=6)
    db.commit()
    job_service.schedule_job(db, JobType.FILE_CLEANUP, {})

    assert await worker.run_pending_jobs(db) == 1
    assert db.query(File).count() == 0
