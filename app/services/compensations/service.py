import logging

from sqlalchemy.orm import Session as DBSession

from app.models.compensation import CompensationLog
from app.models.credit_ledger import LedgerOperation
from app.models.generation_job import GenerationJob
from app.services.generations.catalog import ProviderCatalog
from app.services.generations.errors import UnknownGenerationMode
from app.services.ledger.service import LedgerService
from app.services.jobs.service import JobService
from app.utils.metrics import generations_failed_total, refunds_issued_total

logger = logging.getLogger(__name__)


class RefundReason:
    PROVIDER_SUBMISSION_FAILED = "provider_submission_failed"
    PROVIDER_FAILED = "provider_failed"
    PROVIDER_OUTPUT_INVALID = "provider_output_invalid"
    OUTPUT_DOWNLOAD_FAILED = "output_download_failed"
    TRANSCODE_FAILED = "transcode_failed"
    TRANSCODE_TIMEOUT = "transcode_timeout"
    DISPATCH_ORPHANED = "dispatch_orphaned"
    PROCESSING_TIMEOUT = "processing_timeout"


class RefundCompensator:
    """
    Reverses the debit of a generation job that ended in `failed`.

    Call it only in the transaction that applied the processing -> failed
    transition; that guard makes the refund exactly-once per job. The ledger
    reference refund:<job id> makes a repeated call a no-op as well.
    """

    def __init__(self, catalog: ProviderCatalog):
        self.catalog = catalog

    def refund_amount(self, job: GenerationJob) -> int:
        if job.cost:
            return job.cost
        return self.catalog.cost_for(job.mode)

    def refund(self, db: DBSession, job: GenerationJob, reason: str) -> bool:
        """Credit the job's debit back to its account. Returns True if credits moved."""
        try:
            amount = self.refund_amount(job)
        except UnknownGenerationMode:
            logger.error(
                "refund_unknown_mode",
                extra={"job_id": job.id, "account_id": job.account_id, "mode": job.mode},
            )
            raise

        applied = LedgerService(db).credit(
            job.account_id,
            amount,
            reference=f"refund:{job.id}",
            operation=LedgerOperation.REFUND,
            job_id=job.id,
        )
        if not applied:
            return False

        db.add(
            CompensationLog(
                job_id=job.id,
                account_id=job.account_id,
                mode=job.mode,
                reason=reason,
                amount=amount,
            )
        )
        db.flush()
        refunds_issued_total.labels(reason=reason).inc()
        logger.info(
            "refund_issued",
            extra={
                "job_id": job.id,
                "account_id": job.account_id,
                "mode": job.mode,
                "amount": amount,
                "reason": reason,
            },
        )
        return True

    def fail_and_refund(self, db: DBSession, job_id: str, reason: str, error_detail: str | None = None) -> bool:
        """
        Guarded processing -> failed transition plus refund, flushed together.
        Returns False (and refunds nothing) if the job already left processing.
        The caller commits.
        """
        jobs = JobService(db)
        if not jobs.fail(job_id, error_detail=f"{reason}: {error_detail}" if error_detail else reason):
            return False
        job = jobs.get(job_id)
        self.refund(db, job, reason)
        generations_failed_total.labels(mode=job.mode, reason=reason).inc()
        logger.info(
            "generation_failed",
            extra={"job_id": job_id, "account_id": job.account_id, "mode": job.mode, "reason": reason},
        )
        return True
