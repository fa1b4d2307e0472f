"""
Transcoding pipeline: provider video bytes -> GIF in blob storage.

submit -> poll on a fixed interval with a bounded number of attempts ->
download -> upload. Exceeding the attempt bound is a definite failure.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from app.services.generations.errors import TranscodeFailure, TranscodeTimeout
from app.services.transcoding.client import GifConverterClient, TranscodeStatus
from app.storage.base import Storage, StorageError
from app.utils.metrics import transcode_duration_seconds

logger = logging.getLogger(__name__)


@dataclass
class TranscodeResult:
    gif_url: str
    path: str
    transcode_job_id: str


class TranscodingPipeline:
    def __init__(
        self,
        client: GifConverterClient,
        storage: Storage,
        fps: int = 16,
        poll_interval: float = 2.0,
        max_attempts: int = 30,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.storage = storage
        self.fps = fps
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    def transcode(self, video_bytes: bytes, owner_id: str) -> TranscodeResult:
        """
        Convert video bytes to a GIF and store it under <owner_id>/<uuid>.gif.
        Raises TranscodeFailure or TranscodeTimeout; nothing is stored on failure.
        """
        if not video_bytes:
            raise TranscodeFailure("Empty video input")
        started = time.monotonic()
        job_id = self.client.create_job(video_bytes, fps=self.fps)
        logger.info("transcode_submitted", extra={"transcode_job_id": job_id, "account_id": owner_id})

        self._wait_until_finished(job_id)

        gif_bytes = self.client.download_result(job_id)
        path = f"{owner_id}/{uuid4()}.gif"
        try:
            gif_url = self.storage.save(path, gif_bytes, "image/gif")
        except StorageError as e:
            raise TranscodeFailure(f"GIF upload failed: {e}", detail={"transcode_job_id": job_id}) from e

        transcode_duration_seconds.observe(time.monotonic() - started)
        logger.info("transcode_finished", extra={"transcode_job_id": job_id, "account_id": owner_id})
        return TranscodeResult(gif_url=gif_url, path=path, transcode_job_id=job_id)

    def discard(self, result: TranscodeResult) -> None:
        """Remove an uploaded GIF that no job ended up referencing."""
        try:
            self.storage.delete(result.path)
        except StorageError:
            logger.warning("transcode_discard_failed", extra={"transcode_job_id": result.transcode_job_id})

    def _wait_until_finished(self, job_id: str) -> None:
        for attempt in range(1, self.max_attempts + 1):
            self._sleep(self.poll_interval)
            status = self.client.get_job_status(job_id)
            if status == TranscodeStatus.FINISHED:
                return
            if status == TranscodeStatus.FAILED:
                raise TranscodeFailure("GIF conversion failed", detail={"transcode_job_id": job_id})
            logger.debug(
                "transcode_poll",
                extra={"transcode_job_id": job_id, "attempt": attempt, "provider_status": status},
            )
        raise TranscodeTimeout(
            f"GIF conversion not finished after {self.max_attempts} polls",
            detail={"transcode_job_id": job_id},
        )
