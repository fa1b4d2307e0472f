"""
Operational endpoints: cron-triggered sweep, manual per-job reprocess and the
payment processor's purchase-completed event. Each is guarded by its own
shared secret header.
"""
import logging

import pybreaker
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_services, require_cron_secret, require_payments_secret, require_process_secret
from app.db.session import get_db
from app.schemas.generations import CreditPurchaseIn, CreditPurchaseOut, ReconcileOut
from app.services.generations.builder import GenerationServices
from app.services.generations.errors import AccountNotFound, JobNotFound
from app.services.ledger.service import LedgerService
from app.services.video_generation.base import VideoGenerationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/sweep", dependencies=[Depends(require_cron_secret)])
def run_sweep(services: GenerationServices = Depends(get_services)) -> dict:
    """Run one polling sweep tick now."""
    return services.sweep.run_once().as_dict()


@router.post("/jobs/{job_id}/reprocess", response_model=ReconcileOut, dependencies=[Depends(require_process_secret)])
def reprocess_job(job_id: str, services: GenerationServices = Depends(get_services)) -> ReconcileOut:
    """Poll the provider for one job and reconcile it."""
    try:
        result = services.reconciler.reconcile_from_provider(job_id, source="manual")
    except JobNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (VideoGenerationError, pybreaker.CircuitBreakerError) as e:
        logger.warning("reprocess_provider_error", extra={"job_id": job_id, "error": str(e)[:300]})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    return ReconcileOut(job_id=result.job_id, outcome=result.outcome, status=result.status, detail=result.detail)


@router.post("/credits/purchase", response_model=CreditPurchaseOut, dependencies=[Depends(require_payments_secret)])
def purchase_completed(body: CreditPurchaseIn, db: Session = Depends(get_db)) -> CreditPurchaseOut:
    """Credit a completed purchase. Replays of the same payment reference are no-ops."""
    ledger = LedgerService(db)
    try:
        applied = ledger.record_purchase(body.account_id, body.credits, body.payment_reference)
    except AccountNotFound as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return CreditPurchaseOut(
        account_id=body.account_id,
        applied=applied,
        balance=ledger.get_balance(body.account_id),
    )
