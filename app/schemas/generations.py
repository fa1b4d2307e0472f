from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class GenerationCreate(BaseModel):
    image_url: str
    prompt: str = Field(min_length=1, max_length=2000)
    mode: str = "standard"
    params: dict[str, Any] = Field(default_factory=dict)
    enhance_prompt: bool = True
    count: int = Field(default=1, ge=1, le=10)  # independent attempts, one debit each


class GenerationJobOut(BaseModel):
    job_id: str
    provider_job_id: str
    mode: str
    cost: int
    prompt_enhanced: bool


class GenerationBatchOut(BaseModel):
    jobs: list[GenerationJobOut]
    failed: list[dict[str, Any]] = Field(default_factory=list)


class ReconcileOut(BaseModel):
    job_id: str
    outcome: str
    status: str
    detail: str | None = None


class CreditPurchaseIn(BaseModel):
    account_id: str
    credits: int = Field(gt=0)
    payment_reference: str = Field(min_length=1, max_length=255)


class CreditPurchaseOut(BaseModel):
    account_id: str
    applied: bool
    balance: int


class GenerationStatusOut(BaseModel):
    job_id: str
    status: str
    mode: str
    cost: int
    prompt: str
    enhanced_prompt: str | None = None
    video_url: str | None = None
    gif_url: str | None = None
    created_at: datetime
    updated_at: datetime


class CreditBalanceOut(BaseModel):
    account_id: str
    credits: int
