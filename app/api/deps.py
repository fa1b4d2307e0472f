import hmac

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.services.generations.builder import GenerationServices, get_generation_services


def get_services() -> GenerationServices:
    return get_generation_services()


def get_account_id(x_account_id: str | None = Header(default=None)) -> str:
    """Account id injected by the identity gateway in front of this API."""
    if not x_account_id or not x_account_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Account-Id header required")
    return x_account_id.strip()


def _require_secret(expected: str, provided: str | None) -> None:
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="endpoint not configured")
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    _require_secret(settings.cron_secret, x_cron_secret)


def require_process_secret(x_process_secret: str | None = Header(default=None)) -> None:
    _require_secret(settings.process_secret, x_process_secret)


def require_payments_secret(x_payments_secret: str | None = Header(default=None)) -> None:
    _require_secret(settings.payments_secret, x_payments_secret)


def webhook_secret_for(provider_name: str) -> str:
    return {
        "replicate": settings.replicate_webhook_secret,
        "video_api": settings.video_api_webhook_secret,
    }.get(provider_name, "")
