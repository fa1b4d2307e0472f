"""Tests for ReplicateProvider against a mocked Replicate HTTP API."""
import json

import httpx
import pytest

from app.services.video_generation import ProviderStatus, VideoGenerationError, VideoGenerationRequest
from app.services.video_generation.providers.replicate import ReplicateProvider


def _provider(handler, **config):
    return ReplicateProvider({
        "api_token": "r8_test",
        "api_url": "https://replicate.test/v1",
        "transport": httpx.MockTransport(handler),
        **config,
    })


class TestSubmit:
    def test_creates_prediction_with_webhook(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pred_1", "status": "starting"})

        submission = _provider(handler).submit(
            VideoGenerationRequest(
                payload={"image": "https://img.test/a.png", "prompt": "waves"},
                model="wavespeedai/wan-2.1-i2v-480p",
                webhook_url="https://api.test/webhooks/replicate",
            )
        )

        assert submission.provider_job_id == "pred_1"
        assert seen["url"] == "https://replicate.test/v1/models/wavespeedai/wan-2.1-i2v-480p/predictions"
        assert seen["auth"] == "Bearer r8_test"
        assert seen["body"] == {
            "input": {"image": "https://img.test/a.png", "prompt": "waves"},
            "webhook": "https://api.test/webhooks/replicate",
            "webhook_events_filter": ["completed"],
        }

    def test_no_webhook_when_not_configured(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pred_1"})

        _provider(handler).submit(VideoGenerationRequest(payload={"prompt": "waves"}))

        assert "webhook" not in seen["body"]

    def test_http_error_carries_status(self):
        provider = _provider(lambda request: httpx.Response(422, json={"detail": "invalid input"}))

        with pytest.raises(VideoGenerationError) as exc:
            provider.submit(VideoGenerationRequest(payload={"prompt": "waves"}))

        assert exc.value.detail["http_status"] == 422
        assert "invalid input" in exc.value.detail["body"]

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(VideoGenerationError):
            _provider(handler).submit(VideoGenerationRequest(payload={"prompt": "waves"}))

    def test_non_json_body(self):
        provider = _provider(lambda request: httpx.Response(201, text="<html>bad gateway</html>"))

        with pytest.raises(VideoGenerationError) as exc:
            provider.submit(VideoGenerationRequest(payload={"prompt": "waves"}))

        assert exc.value.detail["http_status"] == 201
        assert "bad gateway" in exc.value.detail["body"]

    def test_not_configured(self):
        provider = ReplicateProvider({"api_token": ""})
        assert provider.is_available() is False
        with pytest.raises(VideoGenerationError):
            provider.submit(VideoGenerationRequest(payload={}))


class TestStatus:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("starting", ProviderStatus.PENDING),
            ("processing", ProviderStatus.PENDING),
            ("succeeded", ProviderStatus.SUCCEEDED),
            ("failed", ProviderStatus.FAILED),
            ("canceled", ProviderStatus.FAILED),
        ],
    )
    def test_status_mapping(self, raw, expected):
        def handler(request):
            assert request.url.path == "/v1/predictions/pred_1"
            return httpx.Response(200, json={"id": "pred_1", "status": raw, "output": None})

        assert _provider(handler).get_status("pred_1").status == expected

    def test_webhook_payload(self):
        provider = _provider(lambda request: httpx.Response(200))

        provider_job_id, update = provider.parse_webhook(
            {"id": "pred_9", "status": "succeeded", "output": ["https://replicate.delivery/x.mp4"]}
        )

        assert provider_job_id == "pred_9"
        assert update.status == ProviderStatus.SUCCEEDED
        assert update.output == ["https://replicate.delivery/x.mp4"]

    def test_webhook_without_id(self):
        with pytest.raises(ValueError):
            _provider(lambda request: httpx.Response(200)).parse_webhook({"status": "failed"})

    def test_download_output(self):
        provider = _provider(lambda request: httpx.Response(200, content=b"mp4"))
        assert provider.download_output("https://replicate.delivery/x.mp4") == b"mp4"
