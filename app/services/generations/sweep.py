"""
Polling sweep: one bounded tick over jobs still in `processing`.

Per tick:
- orphaned dispatches (no provider id after orphan_after) are failed and refunded;
- jobs older than processing_timeout are failed and refunded;
- up to batch_size submitted jobs, least recently polled first, are polled at
  their provider and reconciled.
A per-job error is logged and retried next tick; it never aborts the batch.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import sessionmaker

from app.db.scope import session_scope
from app.services.compensations.service import RefundCompensator, RefundReason
from app.services.generations.reconciler import CompletionReconciler
from app.services.jobs.service import JobService
from app.utils.metrics import processing_jobs, sweep_duration_seconds

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    polled: int = 0
    applied: int = 0
    errors: int = 0
    orphaned: int = 0
    timed_out: int = 0
    job_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "polled": self.polled,
            "applied": self.applied,
            "errors": self.errors,
            "orphaned": self.orphaned,
            "timed_out": self.timed_out,
        }


class PollingSweep:
    def __init__(
        self,
        session_factory: sessionmaker,
        reconciler: CompletionReconciler,
        compensator: RefundCompensator,
        batch_size: int = 5,
        lease_seconds: int = 300,
        orphan_after: timedelta = timedelta(minutes=15),
        processing_timeout: timedelta = timedelta(minutes=180),
    ):
        self.session_factory = session_factory
        self.reconciler = reconciler
        self.compensator = compensator
        self.batch_size = batch_size
        self.lease_seconds = lease_seconds
        self.orphan_after = orphan_after
        self.processing_timeout = processing_timeout

    def run_once(self, now: datetime | None = None) -> SweepReport:
        now = now or datetime.now(timezone.utc)
        started = time.monotonic()
        report = SweepReport()

        report.orphaned = self._expire(
            RefundReason.DISPATCH_ORPHANED,
            lambda jobs: jobs.list_orphaned(now - self.orphan_after, self.batch_size),
            report,
        )
        report.timed_out = self._expire(
            RefundReason.PROCESSING_TIMEOUT,
            lambda jobs: jobs.list_timed_out(
                now - self.processing_timeout, self.batch_size, self.lease_seconds, now=now
            ),
            report,
        )

        with session_scope(self.session_factory) as db:
            jobs = JobService(db)
            batch = [job.id for job in jobs.list_pollable(self.batch_size, self.lease_seconds, now=now)]
            processing_jobs.set(jobs.count_processing())

        for job_id in batch:
            report.polled += 1
            try:
                result = self.reconciler.reconcile_from_provider(job_id, source="poll")
            except Exception:
                report.errors += 1
                logger.exception("sweep_job_failed", extra={"job_id": job_id})
                continue
            if result.applied:
                report.applied += 1
                report.job_ids.append(job_id)

        sweep_duration_seconds.observe(time.monotonic() - started)
        logger.info(
            "sweep_finished",
            extra={
                "batch_size": len(batch),
                "processed": report.polled,
                "failed": report.errors,
                "outcome": report.as_dict(),
            },
        )
        return report

    def _expire(self, reason: str, select_jobs, report: SweepReport) -> int:
        with session_scope(self.session_factory) as db:
            candidates = [job.id for job in select_jobs(JobService(db))]

        expired = 0
        for job_id in candidates:
            try:
                with session_scope(self.session_factory) as db:
                    applied = self.compensator.fail_and_refund(db, job_id, reason)
                    db.commit()
            except Exception:
                report.errors += 1
                logger.exception("sweep_expire_failed", extra={"job_id": job_id, "reason": reason})
                continue
            if applied:
                expired += 1
                report.job_ids.append(job_id)
                logger.warning("generation_expired", extra={"job_id": job_id, "reason": reason})
        return expired
