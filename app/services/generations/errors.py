"""
Error taxonomy for generation orchestration.
Errors raised before a debit have no side effects; errors raised after a debit
reach the caller only once the refund has been applied.
"""
from typing import Any


class GenerationError(Exception):
    """Base class; `detail` carries structured context for logging."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class UnknownGenerationMode(GenerationError):
    pass


class InvalidModeParams(GenerationError):
    pass


class AccountNotFound(GenerationError):
    pass


class InsufficientCredits(GenerationError):
    def __init__(self, account_id: str, required: int):
        super().__init__(
            "Insufficient credits",
            detail={"account_id": account_id, "required": required},
        )
        self.account_id = account_id
        self.required = required


class JobNotFound(GenerationError):
    pass


class ProviderSubmissionError(GenerationError):
    """Provider rejected the submission; the job is failed and refunded."""

    def __init__(self, message: str, job_id: str, detail: dict[str, Any] | None = None):
        super().__init__(message, detail)
        self.job_id = job_id


class ProviderOutputInvalid(GenerationError):
    pass


class TranscodeError(GenerationError):
    pass


class TranscodeTimeout(TranscodeError):
    pass


class TranscodeFailure(TranscodeError):
    pass


class UnauthorizedWebhook(GenerationError):
    pass


class InvalidGenerationRequest(GenerationError):
    pass


class UnknownProvider(GenerationError):
    pass
