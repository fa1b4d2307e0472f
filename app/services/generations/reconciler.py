"""
Completion reconciler: the one transition function behind both ingress paths
(provider webhooks and the polling sweep).

Every terminal write is a conditional update on status = 'processing', so when
the webhook and the sweep observe the same job only the first one transitions
it and at most one refund is issued. Success paths additionally take a
transcode lease before downloading, so two success notifications never
transcode the same video twice. No session is held across a network call.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable

import pybreaker
from sqlalchemy.orm import sessionmaker

from app.db.scope import session_scope
from app.models.generation_job import GenerationJob, JobStatus
from app.services.circuit_breaker import get_circuit_breaker
from app.services.compensations.service import RefundCompensator, RefundReason
from app.services.generations.errors import (
    InvalidGenerationRequest,
    JobNotFound,
    ProviderOutputInvalid,
    TranscodeError,
    TranscodeTimeout,
    UnknownProvider,
)
from app.services.jobs.service import JobService
from app.services.transcoding.pipeline import TranscodingPipeline
from app.services.video_generation.base import (
    ProviderStatus,
    ProviderUpdate,
    VideoGenerationError,
    VideoGenerationProvider,
)
from app.utils.metrics import generations_completed_total, reconcile_noop_total

logger = logging.getLogger(__name__)


class TransitionOutcome:
    APPLIED = "applied"
    NOOP = "noop"


@dataclass
class ReconcileResult:
    job_id: str
    outcome: str
    status: str
    detail: str | None = None

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


def extract_output_url(output: Any) -> str:
    """
    Provider output on success: a URL string or a list whose first element is one.
    Anything else raises ProviderOutputInvalid.
    """
    if isinstance(output, (list, tuple)):
        if not output:
            raise ProviderOutputInvalid("Provider reported success with empty output")
        output = output[0]
    if not isinstance(output, str) or not output.strip():
        raise ProviderOutputInvalid(
            "Provider reported success without an output URL",
            detail={"output": str(output)[:200]},
        )
    url = output.strip()
    if not url.startswith(("http://", "https://")):
        raise ProviderOutputInvalid("Provider output is not an http(s) URL", detail={"output": url[:200]})
    return url


class CompletionReconciler:
    def __init__(
        self,
        session_factory: sessionmaker,
        providers: dict[str, VideoGenerationProvider],
        pipeline: TranscodingPipeline,
        compensator: RefundCompensator,
        lease_seconds: int = 300,
        breaker_factory: Callable[[str], pybreaker.CircuitBreaker] = get_circuit_breaker,
    ):
        self.session_factory = session_factory
        self.providers = providers
        self.pipeline = pipeline
        self.compensator = compensator
        self.lease_seconds = lease_seconds
        self._breaker_factory = breaker_factory

    def reconcile(self, job_id: str, update: ProviderUpdate, source: str = "manual") -> ReconcileResult:
        """Apply a provider-reported status to a job. Terminal or pending jobs are a no-op."""
        job = self._load(job_id)
        if job.status != JobStatus.PROCESSING:
            return self._noop(job, source, "already_terminal")

        if update.status == ProviderStatus.PENDING:
            return self._noop(job, source, "pending")
        if update.status == ProviderStatus.FAILED:
            return self._fail(job, source, RefundReason.PROVIDER_FAILED, update.error or update.raw_status)
        if update.status == ProviderStatus.SUCCEEDED:
            return self._complete(job, update, source)

        logger.warning(
            "reconcile_unknown_status",
            extra={"job_id": job_id, "provider_status": update.status, "outcome": TransitionOutcome.NOOP},
        )
        return self._noop(job, source, "unknown_status")

    def reconcile_from_provider(self, job_id: str, source: str = "poll") -> ReconcileResult:
        """Query the provider for the job's current status and reconcile it."""
        job = self._load(job_id)
        if job.status != JobStatus.PROCESSING:
            return self._noop(job, source, "already_terminal")
        if not job.provider_job_id:
            return self._noop(job, source, "not_submitted")

        with session_scope(self.session_factory) as db:
            JobService(db).mark_polled(job_id)
            db.commit()

        provider = self._provider(job.provider)
        breaker = self._breaker_factory(f"provider:{job.provider}")
        update = breaker.call(provider.get_status, job.provider_job_id)
        logger.info(
            "provider_status_polled",
            extra={
                "job_id": job_id,
                "provider": job.provider,
                "provider_job_id": job.provider_job_id,
                "provider_status": update.raw_status or update.status,
            },
        )
        return self.reconcile(job_id, update, source=source)

    def handle_webhook(self, provider_name: str, payload: dict[str, Any]) -> ReconcileResult:
        """Map a verified webhook body to its job and reconcile it."""
        provider = self._provider(provider_name)
        try:
            provider_job_id, update = provider.parse_webhook(payload)
        except (ValueError, NotImplementedError) as e:
            raise InvalidGenerationRequest(str(e), detail={"provider": provider_name}) from e

        with session_scope(self.session_factory) as db:
            job = JobService(db).get_by_provider_job_id(provider_job_id)
        if job is None or job.provider != provider.name:
            logger.warning(
                "webhook_unknown_job",
                extra={"provider": provider_name, "provider_job_id": provider_job_id},
            )
            raise JobNotFound(
                f"No job for {provider_name} id {provider_job_id}",
                detail={"provider": provider_name, "provider_job_id": provider_job_id},
            )
        return self.reconcile(job.id, update, source="webhook")

    def _complete(self, job: GenerationJob, update: ProviderUpdate, source: str) -> ReconcileResult:
        try:
            output_url = extract_output_url(update.output)
        except ProviderOutputInvalid as e:
            return self._fail(job, source, RefundReason.PROVIDER_OUTPUT_INVALID, str(e))

        with session_scope(self.session_factory) as db:
            claimed = JobService(db).claim_transcode(job.id, self.lease_seconds)
            db.commit()
        if not claimed:
            return self._noop(job, source, "transcode_in_progress")

        try:
            return self._transcode_and_complete(job, output_url, source)
        except Exception:
            with session_scope(self.session_factory) as db:
                JobService(db).release_transcode_claim(job.id)
                db.commit()
            raise

    def _transcode_and_complete(self, job: GenerationJob, output_url: str, source: str) -> ReconcileResult:
        provider = self._provider(job.provider)
        try:
            video_bytes = provider.download_output(output_url)
        except VideoGenerationError as e:
            return self._fail(job, source, RefundReason.OUTPUT_DOWNLOAD_FAILED, str(e))

        try:
            result = self.pipeline.transcode(video_bytes, job.account_id)
        except TranscodeTimeout as e:
            return self._fail(job, source, RefundReason.TRANSCODE_TIMEOUT, str(e))
        except TranscodeError as e:
            return self._fail(job, source, RefundReason.TRANSCODE_FAILED, str(e))

        with session_scope(self.session_factory) as db:
            applied = JobService(db).complete(job.id, video_url=output_url, gif_url=result.gif_url)
            db.commit()
        if not applied:
            self.pipeline.discard(result)
            return self._noop(job, source, "already_terminal")

        generations_completed_total.labels(mode=job.mode).inc()
        logger.info(
            "generation_completed",
            extra={
                "job_id": job.id,
                "account_id": job.account_id,
                "mode": job.mode,
                "provider_job_id": job.provider_job_id,
                "transcode_job_id": result.transcode_job_id,
                "outcome": TransitionOutcome.APPLIED,
                "source": source,
            },
        )
        return ReconcileResult(job.id, TransitionOutcome.APPLIED, JobStatus.COMPLETED)

    def _fail(self, job: GenerationJob, source: str, reason: str, error: str | None) -> ReconcileResult:
        with session_scope(self.session_factory) as db:
            applied = self.compensator.fail_and_refund(db, job.id, reason, error)
            db.commit()
        if not applied:
            return self._noop(job, source, "already_terminal")
        return ReconcileResult(job.id, TransitionOutcome.APPLIED, JobStatus.FAILED, detail=reason)

    def _noop(self, job: GenerationJob, source: str, detail: str) -> ReconcileResult:
        reconcile_noop_total.labels(source=source).inc()
        logger.debug(
            "reconcile_noop",
            extra={"job_id": job.id, "outcome": TransitionOutcome.NOOP, "reason": detail, "source": source},
        )
        with session_scope(self.session_factory) as db:
            current = JobService(db).get(job.id)
            status = current.status if current is not None else job.status
        return ReconcileResult(job.id, TransitionOutcome.NOOP, status, detail=detail)

    def _load(self, job_id: str) -> GenerationJob:
        with session_scope(self.session_factory) as db:
            job = JobService(db).get(job_id)
        if job is None:
            raise JobNotFound(f"Job {job_id} not found", detail={"job_id": job_id})
        return job

    def _provider(self, name: str) -> VideoGenerationProvider:
        provider = self.providers.get(name)
        if provider is None:
            raise UnknownProvider(f"Unknown provider: {name}", detail={"provider": name})
        return provider
