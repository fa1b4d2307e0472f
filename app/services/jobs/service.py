"""
Generation job store.

Status moves only out of `processing`, through single-row conditional updates
(WHERE status = 'processing'); the first writer wins and later writers get
False. Methods flush and leave commit to the caller so a failed transition
and its refund land in one transaction.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.models.generation_job import GenerationJob, JobStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobService:
    def __init__(self, db: Session):
        self.db = db

    def create_job(
        self,
        account_id: str,
        image_url: str,
        prompt: str,
        mode: str,
        provider: str,
        cost: int,
        job_id: str | None = None,
    ) -> GenerationJob:
        job_kwargs: dict = {
            "account_id": account_id,
            "image_url": image_url,
            "prompt": prompt,
            "mode": mode,
            "provider": provider,
            "cost": cost,
            "status": JobStatus.PROCESSING,
        }
        if job_id is not None:
            job_kwargs["id"] = job_id
        job = GenerationJob(**job_kwargs)
        self.db.add(job)
        self.db.flush()
        return job

    def get(self, job_id: str) -> GenerationJob | None:
        return self.db.query(GenerationJob).filter(GenerationJob.id == job_id).one_or_none()

    def get_by_provider_job_id(self, provider_job_id: str) -> GenerationJob | None:
        return (
            self.db.query(GenerationJob)
            .filter(GenerationJob.provider_job_id == provider_job_id)
            .one_or_none()
        )

    def set_enhanced_prompt(self, job_id: str, enhanced_prompt: str) -> bool:
        return self._update_processing(job_id, enhanced_prompt=enhanced_prompt)

    def set_provider_job_id(self, job_id: str, provider_job_id: str) -> bool:
        return self._update_processing(job_id, provider_job_id=provider_job_id)

    def complete(self, job_id: str, video_url: str, gif_url: str) -> bool:
        """processing -> completed. False if another writer already moved the job."""
        return self._update_processing(
            job_id,
            status=JobStatus.COMPLETED,
            video_url=video_url,
            gif_url=gif_url,
            transcode_claimed_at=None,
        )

    def fail(self, job_id: str, error_detail: str | None = None) -> bool:
        """processing -> failed. False if another writer already moved the job."""
        return self._update_processing(
            job_id,
            status=JobStatus.FAILED,
            error_detail=(error_detail or "")[:2000] or None,
            transcode_claimed_at=None,
        )

    def claim_transcode(self, job_id: str, lease_seconds: int, now: datetime | None = None) -> bool:
        """
        Take the success-path lease: only the claimant downloads and transcodes.
        Claimable when unclaimed or when the previous lease expired.
        """
        now = now or _now()
        cutoff = now - timedelta(seconds=lease_seconds)
        result = self.db.execute(
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status == JobStatus.PROCESSING,
                or_(
                    GenerationJob.transcode_claimed_at.is_(None),
                    GenerationJob.transcode_claimed_at < cutoff,
                ),
            )
            .values(transcode_claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount > 0

    def release_transcode_claim(self, job_id: str) -> None:
        self._update_processing(job_id, transcode_claimed_at=None)

    def mark_polled(self, job_id: str, now: datetime | None = None) -> None:
        self._update_processing(job_id, last_polled_at=now or _now())

    def list_pollable(
        self,
        limit: int,
        lease_seconds: int,
        now: datetime | None = None,
    ) -> list[GenerationJob]:
        """Processing jobs with a provider id and no live lease, least recently polled first."""
        now = now or _now()
        cutoff = now - timedelta(seconds=lease_seconds)
        return (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status == JobStatus.PROCESSING,
                GenerationJob.provider_job_id.isnot(None),
                or_(
                    GenerationJob.transcode_claimed_at.is_(None),
                    GenerationJob.transcode_claimed_at < cutoff,
                ),
            )
            .order_by(GenerationJob.last_polled_at.asc().nullsfirst(), GenerationJob.created_at.asc())
            .limit(limit)
            .all()
        )

    def list_orphaned(self, older_than: datetime, limit: int) -> list[GenerationJob]:
        """Processing jobs that never received a provider id."""
        return (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status == JobStatus.PROCESSING,
                GenerationJob.provider_job_id.is_(None),
                GenerationJob.created_at < older_than,
            )
            .order_by(GenerationJob.created_at.asc())
            .limit(limit)
            .all()
        )

    def list_timed_out(
        self,
        older_than: datetime,
        limit: int,
        lease_seconds: int,
        now: datetime | None = None,
    ) -> list[GenerationJob]:
        """Submitted processing jobs created before `older_than` and not mid-transcode."""
        now = now or _now()
        cutoff = now - timedelta(seconds=lease_seconds)
        return (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status == JobStatus.PROCESSING,
                GenerationJob.provider_job_id.isnot(None),
                GenerationJob.created_at < older_than,
                or_(
                    GenerationJob.transcode_claimed_at.is_(None),
                    GenerationJob.transcode_claimed_at < cutoff,
                ),
            )
            .order_by(GenerationJob.created_at.asc())
            .limit(limit)
            .all()
        )

    def count_processing(self) -> int:
        return self.db.query(GenerationJob).filter(GenerationJob.status == JobStatus.PROCESSING).count()

    def _update_processing(self, job_id: str, **values) -> bool:
        result = self.db.execute(
            update(GenerationJob)
            .where(GenerationJob.id == job_id, GenerationJob.status == JobStatus.PROCESSING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount > 0
