"""
Provider completion webhooks. The signature is checked over the raw body
before anything is parsed; a rejected payload changes nothing.
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_services, webhook_secret_for
from app.schemas.generations import ReconcileOut
from app.services.generations.builder import GenerationServices
from app.services.generations.errors import InvalidGenerationRequest, JobNotFound, UnauthorizedWebhook
from app.services.webhooks.signature import verify_signature
from app.utils.metrics import webhooks_rejected_total

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def authenticate_webhook(provider_name: str, body: bytes, signature: str | None) -> None:
    if not verify_signature(body, signature, webhook_secret_for(provider_name)):
        webhooks_rejected_total.labels(provider=provider_name).inc()
        logger.warning("webhook_rejected", extra={"provider": provider_name, "reason": "bad_signature"})
        raise UnauthorizedWebhook(
            "Invalid webhook signature",
            detail={"provider": provider_name},
        )


@router.post("/{provider_name}", response_model=ReconcileOut)
async def receive_webhook(
    provider_name: str,
    request: Request,
    services: GenerationServices = Depends(get_services),
) -> ReconcileOut:
    provider = services.providers.get(provider_name)
    if provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="unknown provider")

    body = await request.body()
    header_name = provider.signature_header or "X-Signature"
    try:
        authenticate_webhook(provider_name, body, request.headers.get(header_name))
    except UnauthorizedWebhook as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid JSON body") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON object expected")

    try:
        result = await run_in_threadpool(services.reconciler.handle_webhook, provider_name, payload)
    except JobNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except InvalidGenerationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info(
        "webhook_processed",
        extra={"provider": provider_name, "job_id": result.job_id, "outcome": result.outcome},
    )
    return ReconcileOut(job_id=result.job_id, outcome=result.outcome, status=result.status, detail=result.detail)
