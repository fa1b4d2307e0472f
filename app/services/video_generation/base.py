"""
Base classes and types for image-to-video providers.
Every provider exposes the same asynchronous contract:
submit -> external job id, get_status -> ProviderUpdate, download_output -> bytes,
and maps its own webhook body onto (external job id, ProviderUpdate).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ProviderStatus:
    """Normalized three-state provider status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class VideoGenerationRequest:
    """Shaped request for a provider; `payload` comes from the catalog mode."""
    payload: dict[str, Any]
    model: str | None = None
    webhook_url: str | None = None


@dataclass
class ProviderUpdate:
    """Provider-reported state of one external job."""
    status: str
    output: Any = None
    error: str | None = None
    raw_status: str | None = None


@dataclass
class ProviderSubmission:
    provider_job_id: str
    raw_status: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class VideoGenerationError(Exception):
    """Raised when a provider call fails; detail holds http_status and body excerpt."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class VideoGenerationProvider(ABC):
    """Base class for video generation providers."""

    name: str = ""
    # Header carrying the webhook HMAC signature, None if the provider never pushes.
    signature_header: str | None = None

    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass

    @abstractmethod
    def submit(self, request: VideoGenerationRequest) -> ProviderSubmission:
        """Start an asynchronous job. Raises VideoGenerationError on failure."""
        pass

    @abstractmethod
    def get_status(self, provider_job_id: str) -> ProviderUpdate:
        """Current status of an external job. Raises VideoGenerationError on transport failure."""
        pass

    def download_output(self, output_url: str) -> bytes:
        """Fetch the produced video. Providers requiring auth override this."""
        raise NotImplementedError

    def parse_webhook(self, payload: dict[str, Any]) -> tuple[str, ProviderUpdate]:
        """Map a webhook body to (provider_job_id, update)."""
        raise NotImplementedError(f"{self.name} does not push webhooks")

    def close(self) -> None:
        pass


def http_error_detail(response) -> dict[str, Any]:
    """Structured detail for a non-2xx httpx response."""
    return {
        "http_status": response.status_code,
        "body": (response.text or "")[:500],
    }
