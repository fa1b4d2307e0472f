"""
Generation requests: debit, dispatch to the mode's provider, return 202.
Completion arrives later through webhooks or the polling sweep.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_account_id, get_services
from app.db.session import get_db
from app.schemas.generations import (
    CreditBalanceOut,
    GenerationBatchOut,
    GenerationCreate,
    GenerationJobOut,
    GenerationStatusOut,
)
from app.services.generations.builder import GenerationServices
from app.services.generations.errors import (
    AccountNotFound,
    GenerationError,
    InsufficientCredits,
    InvalidGenerationRequest,
    InvalidModeParams,
    ProviderSubmissionError,
    UnknownGenerationMode,
)
from app.services.jobs.service import JobService
from app.services.ledger.service import LedgerService

logger = logging.getLogger(__name__)

# Raised before any debit; the remaining attempts of a batch would fail the same way.
PRE_DEBIT_ERRORS = (
    InvalidGenerationRequest,
    UnknownGenerationMode,
    InvalidModeParams,
    AccountNotFound,
    InsufficientCredits,
)

router = APIRouter(prefix="/generations", tags=["generations"])
credits_router = APIRouter(prefix="/credits", tags=["credits"])


def _http_error(e: GenerationError) -> HTTPException:
    if isinstance(e, (InvalidGenerationRequest, UnknownGenerationMode, InvalidModeParams)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(e), **e.detail})
    if isinstance(e, AccountNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": str(e)})
    if isinstance(e, InsufficientCredits):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"error": "insufficient_credits", "required": e.required},
        )
    if isinstance(e, ProviderSubmissionError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": str(e), "job_id": e.job_id, "refunded": True},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error": str(e)})


@router.post("", response_model=GenerationBatchOut, status_code=status.HTTP_202_ACCEPTED)
def create_generations(
    body: GenerationCreate,
    account_id: str = Depends(get_account_id),
    services: GenerationServices = Depends(get_services),
) -> GenerationBatchOut:
    """
    Start `count` independent generation attempts, each with its own debit.
    If none starts, the first error is returned; otherwise the started jobs are
    returned along with the attempts that were rejected.
    """
    jobs: list[GenerationJobOut] = []
    failed: list[dict] = []
    first_error: GenerationError | None = None

    for _ in range(body.count):
        try:
            result = services.dispatcher.submit(
                account_id=account_id,
                image_url=body.image_url,
                prompt=body.prompt,
                mode=body.mode,
                mode_params=body.params,
                enhance=body.enhance_prompt,
            )
        except GenerationError as e:
            first_error = first_error or e
            failed.append({"type": type(e).__name__, **_http_error(e).detail})
            if isinstance(e, PRE_DEBIT_ERRORS):
                break
            continue
        jobs.append(
            GenerationJobOut(
                job_id=result.job_id,
                provider_job_id=result.provider_job_id,
                mode=result.mode,
                cost=result.cost,
                prompt_enhanced=result.prompt_enhanced,
            )
        )

    if not jobs and first_error is not None:
        raise _http_error(first_error)
    return GenerationBatchOut(jobs=jobs, failed=failed)


@router.get("/{job_id}", response_model=GenerationStatusOut)
def get_generation(
    job_id: str,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> GenerationStatusOut:
    job = JobService(db).get(job_id)
    if job is None or job.account_id != account_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return GenerationStatusOut(
        job_id=job.id,
        status=job.status,
        mode=job.mode,
        cost=job.cost,
        prompt=job.prompt,
        enhanced_prompt=job.enhanced_prompt,
        video_url=job.video_url,
        gif_url=job.gif_url,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@credits_router.get("", response_model=CreditBalanceOut)
def get_credits(
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> CreditBalanceOut:
    try:
        credits = LedgerService(db).get_balance(account_id)
    except AccountNotFound as e:
        raise _http_error(e) from e
    return CreditBalanceOut(account_id=account_id, credits=credits)
