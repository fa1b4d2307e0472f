"""
Generation dispatcher: debit -> job row -> prompt enhancement -> provider submit.

The debit and the job insert commit together. Anything that fails after that
commit fails the job and refunds it before the error reaches the caller, so a
caller sees either a started job or a debit that was already reversed.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

import pybreaker
from sqlalchemy.orm import sessionmaker

from app.db.scope import session_scope
from app.services.circuit_breaker import get_circuit_breaker
from app.services.compensations.service import RefundCompensator, RefundReason
from app.services.generations.catalog import GenerationMode, ProviderCatalog
from app.services.generations.errors import InvalidGenerationRequest, ProviderSubmissionError
from app.services.jobs.service import JobService
from app.services.ledger.service import LedgerService
from app.services.prompt_enhancer.service import PromptEnhancer
from app.services.video_generation.base import (
    ProviderSubmission,
    VideoGenerationError,
    VideoGenerationProvider,
    VideoGenerationRequest,
)
from app.utils.metrics import generations_dispatched_total

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 2000


@dataclass
class DispatchResult:
    job_id: str
    provider_job_id: str
    mode: str
    cost: int
    prompt_enhanced: bool


class GenerationDispatcher:
    def __init__(
        self,
        session_factory: sessionmaker,
        catalog: ProviderCatalog,
        providers: dict[str, VideoGenerationProvider],
        enhancer: PromptEnhancer,
        compensator: RefundCompensator,
        webhook_base_url: str = "",
        breaker_factory: Callable[[str], pybreaker.CircuitBreaker] = get_circuit_breaker,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.providers = providers
        self.enhancer = enhancer
        self.compensator = compensator
        self.webhook_base_url = webhook_base_url.rstrip("/")
        self._breaker_factory = breaker_factory

    def submit(
        self,
        account_id: str,
        image_url: str,
        prompt: str,
        mode: str,
        mode_params: dict[str, Any] | None = None,
        enhance: bool = True,
    ) -> DispatchResult:
        """
        Start one generation attempt.

        Raises before any debit: InvalidGenerationRequest, UnknownGenerationMode,
        InvalidModeParams, AccountNotFound, InsufficientCredits.
        Raises after the refund is applied: ProviderSubmissionError.
        """
        _validate_request(image_url, prompt)
        entry = self.catalog.get(mode)
        params = entry.resolve_params(mode_params)
        job_id = str(uuid4())

        with session_scope(self.session_factory) as db:
            LedgerService(db).debit(account_id, entry.cost, reference=f"job:{job_id}", job_id=job_id)
            JobService(db).create_job(
                account_id=account_id,
                image_url=image_url,
                prompt=prompt,
                mode=entry.name,
                provider=entry.provider,
                cost=entry.cost,
                job_id=job_id,
            )
            db.commit()

        log_extra = {"job_id": job_id, "account_id": account_id, "mode": entry.name, "provider": entry.provider}
        logger.info("generation_job_created", extra={**log_extra, "amount": entry.cost})

        try:
            effective_prompt, enhanced = self._enhance(job_id, prompt, image_url, enhance)
            submission = self._submit_to_provider(entry, image_url, effective_prompt, params)
            stored = self._store_provider_job_id(job_id, submission.provider_job_id)
        except (VideoGenerationError, pybreaker.CircuitBreakerError) as e:
            detail = getattr(e, "detail", None) or {}
            self._fail_and_refund(job_id, f"{type(e).__name__}: {e}")
            logger.warning("generation_dispatch_failed", extra={**log_extra, "error": str(e)[:300]})
            raise ProviderSubmissionError(
                f"Provider {entry.provider} rejected the generation request",
                job_id=job_id,
                detail={**detail, "provider": entry.provider},
            ) from e
        except Exception as e:
            logger.exception("generation_dispatch_error", extra=log_extra)
            self._fail_and_refund(job_id, f"{type(e).__name__}: {e}")
            raise ProviderSubmissionError(
                f"Generation for provider {entry.provider} could not be started",
                job_id=job_id,
                detail={"provider": entry.provider, "error": type(e).__name__},
            ) from e

        if not stored:
            # The job left processing while the provider call was in flight; its refund is already applied.
            raise ProviderSubmissionError(
                f"Generation for provider {entry.provider} expired before it was started",
                job_id=job_id,
                detail={"provider": entry.provider, "provider_job_id": submission.provider_job_id},
            )

        generations_dispatched_total.labels(mode=entry.name).inc()
        logger.info(
            "generation_dispatched",
            extra={**log_extra, "provider_job_id": submission.provider_job_id},
        )
        return DispatchResult(
            job_id=job_id,
            provider_job_id=submission.provider_job_id,
            mode=entry.name,
            cost=entry.cost,
            prompt_enhanced=enhanced,
        )

    def webhook_url_for(self, provider_name: str) -> str | None:
        if not self.webhook_base_url:
            return None
        return f"{self.webhook_base_url}/webhooks/{provider_name}"

    def _enhance(self, job_id: str, prompt: str, image_url: str, enhance: bool) -> tuple[str, bool]:
        if not enhance:
            return prompt, False
        result = self.enhancer.enhance(prompt, image_url)
        if not result.enhanced:
            return prompt, False
        with session_scope(self.session_factory) as db:
            JobService(db).set_enhanced_prompt(job_id, result.prompt)
            db.commit()
        return result.prompt, True

    def _submit_to_provider(
        self,
        entry: GenerationMode,
        image_url: str,
        prompt: str,
        params: dict[str, Any],
    ) -> ProviderSubmission:
        provider = self.providers.get(entry.provider)
        if provider is None:
            raise VideoGenerationError(f"Provider {entry.provider} is not registered")
        request = VideoGenerationRequest(
            payload=entry.build_payload(image_url, prompt, params),
            model=entry.model,
            webhook_url=self.webhook_url_for(entry.provider),
        )
        breaker = self._breaker_factory(f"provider:{entry.provider}")
        return breaker.call(provider.submit, request)

    def _store_provider_job_id(self, job_id: str, provider_job_id: str) -> bool:
        with session_scope(self.session_factory) as db:
            stored = JobService(db).set_provider_job_id(job_id, provider_job_id)
            db.commit()
        if not stored:
            logger.warning(
                "provider_job_id_not_stored",
                extra={"job_id": job_id, "provider_job_id": provider_job_id},
            )
        return stored

    def _fail_and_refund(self, job_id: str, error_detail: str) -> None:
        with session_scope(self.session_factory) as db:
            self.compensator.fail_and_refund(
                db, job_id, RefundReason.PROVIDER_SUBMISSION_FAILED, error_detail
            )
            db.commit()


def _validate_request(image_url: str, prompt: str) -> None:
    if not image_url or not image_url.startswith(("http://", "https://")):
        raise InvalidGenerationRequest("image_url must be an http(s) URL", detail={"image_url": image_url})
    if not prompt or not prompt.strip():
        raise InvalidGenerationRequest("prompt must not be empty")
    if len(prompt) > MAX_PROMPT_CHARS:
        raise InvalidGenerationRequest(
            f"prompt must be at most {MAX_PROMPT_CHARS} characters",
            detail={"prompt_len": len(prompt)},
        )
