"""
Replicate API provider for image-to-video generation.
Predictions are created asynchronously against the model endpoint; completion
arrives by webhook (Replicate-Signature) or by polling GET /predictions/{id}.
"""
from typing import Any

import httpx

from app.services.video_generation.base import (
    ProviderStatus,
    ProviderSubmission,
    ProviderUpdate,
    VideoGenerationError,
    VideoGenerationProvider,
    VideoGenerationRequest,
    http_error_detail,
)
from app.utils.metrics import provider_requests_total

STATUS_MAP = {
    "starting": ProviderStatus.PENDING,
    "processing": ProviderStatus.PENDING,
    "succeeded": ProviderStatus.SUCCEEDED,
    "failed": ProviderStatus.FAILED,
    "canceled": ProviderStatus.FAILED,
}


class ReplicateProvider(VideoGenerationProvider):
    """Replicate API provider for video generation."""

    name = "replicate"
    signature_header = "Replicate-Signature"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_token = config.get("api_token")
        self.api_url = (config.get("api_url") or "https://api.replicate.com/v1").rstrip("/")
        self.timeout = config.get("timeout", 30.0)
        self.default_model = config.get("model", "wavespeedai/wan-2.1-i2v-480p")
        self._transport = config.get("transport")
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=True)
        return self._client

    def is_available(self) -> bool:
        """Check if Replicate is configured."""
        return bool(self.api_token)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def submit(self, request: VideoGenerationRequest) -> ProviderSubmission:
        """Create a prediction; returns the prediction id."""
        if not self.is_available():
            raise VideoGenerationError("Replicate provider not configured")

        model = request.model or self.default_model
        body: dict[str, Any] = {"input": dict(request.payload)}
        if request.webhook_url:
            body["webhook"] = request.webhook_url
            body["webhook_events_filter"] = ["completed"]

        prediction = self._request("POST", f"{self.api_url}/models/{model}/predictions", "submit", json=body)
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise VideoGenerationError(
                "Replicate returned no prediction id",
                detail={"body": str(prediction)[:500]},
            )
        return ProviderSubmission(provider_job_id=prediction_id, raw_status=prediction.get("status"))

    def get_status(self, provider_job_id: str) -> ProviderUpdate:
        prediction = self._request("GET", f"{self.api_url}/predictions/{provider_job_id}", "status")
        return self._to_update(prediction)

    def download_output(self, output_url: str) -> bytes:
        try:
            response = self.client.get(output_url)
        except httpx.HTTPError as e:
            raise VideoGenerationError(f"Replicate output download failed: {e}", detail={"error": type(e).__name__}) from e
        if response.status_code >= 400:
            raise VideoGenerationError("Replicate output download failed", detail=http_error_detail(response))
        return response.content

    def parse_webhook(self, payload: dict[str, Any]) -> tuple[str, ProviderUpdate]:
        prediction_id = payload.get("id")
        if not prediction_id:
            raise ValueError("webhook payload has no prediction id")
        return prediction_id, self._to_update(payload)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _to_update(self, prediction: dict[str, Any]) -> ProviderUpdate:
        raw_status = prediction.get("status") or ""
        return ProviderUpdate(
            status=STATUS_MAP.get(raw_status, ProviderStatus.PENDING),
            output=prediction.get("output"),
            error=prediction.get("error"),
            raw_status=raw_status,
        )

    def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> dict:
        try:
            response = self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            provider_requests_total.labels(provider=self.name, operation=operation, status="error").inc()
            raise VideoGenerationError(
                f"Replicate {operation} request failed: {e}",
                detail={"error": type(e).__name__},
            ) from e
        provider_requests_total.labels(
            provider=self.name, operation=operation, status=str(response.status_code)
        ).inc()
        if response.status_code >= 400:
            raise VideoGenerationError(
                f"Replicate {operation} returned HTTP {response.status_code}",
                detail=http_error_detail(response),
            )
        try:
            data = response.json()
        except ValueError as e:
            raise VideoGenerationError(
                f"Replicate {operation} returned a non-JSON body",
                detail={"http_status": response.status_code, "body": response.text[:500]},
            ) from e
        if not isinstance(data, dict):
            raise VideoGenerationError(
                f"Replicate {operation} returned an unexpected body",
                detail={"http_status": response.status_code, "body": str(data)[:500]},
            )
        return data
