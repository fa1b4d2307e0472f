"""
HTTP client for the external video-to-GIF conversion service.
POST /jobs (multipart: fps, file) -> {"job_id"}; GET /jobs/{id} -> {"status"};
GET /jobs/{id}/gif -> GIF bytes. Authenticated with X-API-KEY.
"""
import logging
from typing import Any

import httpx

from app.services.generations.errors import TranscodeFailure

logger = logging.getLogger(__name__)


class TranscodeStatus:
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"

    ALL = frozenset({QUEUED, RUNNING, FINISHED, FAILED})


class GifConverterClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"X-API-KEY": api_key},
        )

    def is_available(self) -> bool:
        return bool(self.base_url and self.api_key)

    def create_job(self, video_bytes: bytes, fps: int = 16) -> str:
        if not self.is_available():
            raise TranscodeFailure("GIF converter not configured")
        response = self._request(
            "POST",
            f"{self.base_url}/jobs",
            "create",
            data={"fps": str(fps)},
            files={"file": ("video.mp4", video_bytes, "video/mp4")},
        )
        job_id = response.json().get("job_id")
        if not job_id:
            raise TranscodeFailure("GIF converter returned no job id")
        return str(job_id)

    def get_job_status(self, job_id: str) -> str:
        status = (self._request("GET", f"{self.base_url}/jobs/{job_id}", "status").json().get("status") or "").lower()
        if status not in TranscodeStatus.ALL:
            logger.warning("transcode_unknown_status", extra={"transcode_job_id": job_id, "error": status})
            return TranscodeStatus.RUNNING
        return status

    def download_result(self, job_id: str) -> bytes:
        content = self._request("GET", f"{self.base_url}/jobs/{job_id}/gif", "download").content
        if not content:
            raise TranscodeFailure("GIF converter returned an empty file", detail={"transcode_job_id": job_id})
        return content

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TranscodeFailure(
                f"GIF converter {operation} request failed: {e}",
                detail={"error": type(e).__name__},
            ) from e
        if response.status_code >= 400:
            raise TranscodeFailure(
                f"GIF converter {operation} returned HTTP {response.status_code}",
                detail={"http_status": response.status_code, "body": response.text[:300]},
            )
        return response
