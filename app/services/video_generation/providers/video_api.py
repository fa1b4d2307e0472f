"""
Primary fast video API (premium mode).
Bearer-authenticated REST: POST /generate, GET /status/{id}, GET /download/{id}.
The produced video is only reachable with the same token, so download goes
through this provider rather than a plain GET.
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
    "queued": ProviderStatus.PENDING,
    "pending": ProviderStatus.PENDING,
    "processing": ProviderStatus.PENDING,
    "running": ProviderStatus.PENDING,
    "done": ProviderStatus.SUCCEEDED,
    "failed": ProviderStatus.FAILED,
    "error": ProviderStatus.FAILED,
    "canceled": ProviderStatus.FAILED,
}


class VideoApiProvider(VideoGenerationProvider):
    name = "video_api"
    signature_header = "X-Signature"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.api_token = config.get("api_token")
        self.timeout = config.get("timeout", 30.0)
        self._transport = config.get("transport")
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_url and self.api_token)

    def submit(self, request: VideoGenerationRequest) -> ProviderSubmission:
        if not self.is_available():
            raise VideoGenerationError("Video API provider not configured")
        body: dict[str, Any] = dict(request.payload)
        if request.webhook_url:
            body["webhook_url"] = request.webhook_url
        data = self._json(self._request("POST", f"{self.api_url}/generate", "submit", json=body), "submit")
        job_id = data.get("job_id") or data.get("id")
        if not job_id:
            raise VideoGenerationError("Video API returned no job id", detail={"body": str(data)[:500]})
        return ProviderSubmission(provider_job_id=str(job_id), raw_status=data.get("status"))

    def get_status(self, provider_job_id: str) -> ProviderUpdate:
        data = self._json(self._request("GET", f"{self.api_url}/status/{provider_job_id}", "status"), "status")
        return self._to_update(provider_job_id, data)

    def download_output(self, output_url: str) -> bytes:
        return self._request("GET", output_url, "download").content

    def parse_webhook(self, payload: dict[str, Any]) -> tuple[str, ProviderUpdate]:
        job_id = payload.get("job_id") or payload.get("id")
        if not job_id:
            raise ValueError("webhook payload has no job id")
        return str(job_id), self._to_update(str(job_id), payload)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _to_update(self, job_id: str, data: dict[str, Any]) -> ProviderUpdate:
        raw_status = (data.get("status") or "").lower()
        status = STATUS_MAP.get(raw_status, ProviderStatus.PENDING)
        output = None
        if status == ProviderStatus.SUCCEEDED:
            # No output key at all: the video lives behind /download/{id}.
            output = data["output"] if "output" in data else f"{self.api_url}/download/{job_id}"
        return ProviderUpdate(status=status, output=output, error=data.get("error"), raw_status=raw_status)

    def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(
                method, url, headers={"Authorization": f"Bearer {self.api_token}"}, **kwargs
            )
        except httpx.HTTPError as e:
            provider_requests_total.labels(provider=self.name, operation=operation, status="error").inc()
            raise VideoGenerationError(
                f"Video API {operation} request failed: {e}",
                detail={"error": type(e).__name__},
            ) from e
        provider_requests_total.labels(
            provider=self.name, operation=operation, status=str(response.status_code)
        ).inc()
        if response.status_code >= 400:
            raise VideoGenerationError(
                f"Video API {operation} returned HTTP {response.status_code}",
                detail=http_error_detail(response),
            )
        return response

    def _json(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise VideoGenerationError(
                f"Video API {operation} returned a non-JSON body",
                detail={"http_status": response.status_code, "body": response.text[:500]},
            ) from e
        if not isinstance(data, dict):
            raise VideoGenerationError(
                f"Video API {operation} returned an unexpected body",
                detail={"http_status": response.status_code, "body": str(data)[:500]},
            )
        return data
