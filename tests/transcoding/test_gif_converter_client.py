"""Tests for GifConverterClient against a mocked conversion service."""
import httpx
import pytest

from app.services.generations.errors import TranscodeFailure
from app.services.transcoding.client import GifConverterClient, TranscodeStatus


def _client(handler):
    return GifConverterClient(
        base_url="https://gif.test/",
        api_key="conv-key",
        transport=httpx.MockTransport(handler),
    )


class TestGifConverterClient:
    def test_create_job_uploads_video(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["X-API-KEY"]
            seen["body"] = request.content
            return httpx.Response(200, json={"job_id": "tc-42"})

        assert _client(handler).create_job(b"mp4-bytes", fps=12) == "tc-42"
        assert seen["url"] == "https://gif.test/jobs"
        assert seen["key"] == "conv-key"
        assert b"mp4-bytes" in seen["body"]
        assert b'name="fps"' in seen["body"]

    def test_create_job_http_error(self):
        with pytest.raises(TranscodeFailure) as exc:
            _client(lambda request: httpx.Response(503, text="busy")).create_job(b"mp4")
        assert exc.value.detail["http_status"] == 503

    def test_status_normalized(self):
        client = _client(lambda request: httpx.Response(200, json={"status": "FINISHED"}))
        assert client.get_job_status("tc-1") == TranscodeStatus.FINISHED

    def test_unknown_status_treated_as_running(self):
        client = _client(lambda request: httpx.Response(200, json={"status": "warming_up"}))
        assert client.get_job_status("tc-1") == TranscodeStatus.RUNNING

    def test_download_result(self):
        def handler(request):
            assert request.url.path == "/jobs/tc-1/gif"
            return httpx.Response(200, content=b"GIF89a")

        assert _client(handler).download_result("tc-1") == b"GIF89a"

    def test_empty_download_is_failure(self):
        with pytest.raises(TranscodeFailure):
            _client(lambda request: httpx.Response(200, content=b"")).download_result("tc-1")

    def test_not_configured(self):
        client = GifConverterClient(base_url="", api_key="")
        with pytest.raises(TranscodeFailure):
            client.create_job(b"mp4")
