"""Tests for JobService: guarded transitions and the transcode lease."""
from datetime import datetime, timedelta, timezone

from conftest import load_job
from app.models.generation_job import JobStatus
from app.services.jobs.service import JobService


def _new_job(db):
    job = JobService(db).create_job("acct", "https://img.test/a.png", "waves", "standard", "replicate", 1)
    db.commit()
    return job.id


class TestTransitions:
    def test_first_transition_wins(self, db, session_factory):
        job_id = _new_job(db)
        jobs = JobService(db)

        assert jobs.complete(job_id, "https://v.test/a.mp4", "https://cdn.test/a.gif") is True
        assert jobs.fail(job_id, "late failure") is False
        db.commit()

        job = load_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.error_detail is None

    def test_no_update_after_terminal(self, db, session_factory):
        job_id = _new_job(db)
        jobs = JobService(db)
        jobs.fail(job_id, "boom")

        assert jobs.set_provider_job_id(job_id, "late-id") is False
        assert jobs.set_enhanced_prompt(job_id, "late prompt") is False
        db.commit()

        assert load_job(session_factory, job_id).provider_job_id is None

    def test_error_detail_truncated(self, db, session_factory):
        job_id = _new_job(db)
        JobService(db).fail(job_id, "x" * 5000)
        db.commit()
        assert len(load_job(session_factory, job_id).error_detail) == 2000


class TestTranscodeLease:
    def test_single_claimant(self, db):
        job_id = _new_job(db)
        jobs = JobService(db)

        assert jobs.claim_transcode(job_id, lease_seconds=300) is True
        assert jobs.claim_transcode(job_id, lease_seconds=300) is False

    def test_expired_lease_can_be_reclaimed(self, db):
        job_id = _new_job(db)
        jobs = JobService(db)
        start = datetime.now(timezone.utc)

        assert jobs.claim_transcode(job_id, lease_seconds=300, now=start) is True
        assert jobs.claim_transcode(job_id, lease_seconds=300, now=start + timedelta(seconds=301)) is True

    def test_released_lease_can_be_reclaimed(self, db):
        job_id = _new_job(db)
        jobs = JobService(db)
        jobs.claim_transcode(job_id, lease_seconds=300)
        jobs.release_transcode_claim(job_id)

        assert jobs.claim_transcode(job_id, lease_seconds=300) is True

    def test_terminal_job_cannot_be_claimed(self, db):
        job_id = _new_job(db)
        jobs = JobService(db)
        jobs.fail(job_id)

        assert jobs.claim_transcode(job_id, lease_seconds=300) is False
