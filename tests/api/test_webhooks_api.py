"""Tests for POST /webhooks/{provider}."""
import json

import pytest

from conftest import balance, load_job
from app.core.config import settings
from app.models.generation_job import JobStatus
from app.services.webhooks.signature import compute_signature

IMAGE = "https://img.test/cat.png"


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "video_api_webhook_secret", "whsec")
    return "whsec"


def _send(client, provider, payload, secret=None, signature=None):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["X-Signature"] = signature
    elif secret is not None:
        headers["X-Signature"] = compute_signature(body, secret)
    return client.post(f"/webhooks/{provider}", content=body, headers=headers)


class TestWebhooks:
    def test_signed_failure_refunds(self, client, services, make_account, session_factory, webhook_secret):
        account_id = make_account(credits=2)
        result = services.dispatcher.submit(account_id, IMAGE, "waves", "premium")

        response = _send(
            client, "video_api", {"id": result.provider_job_id, "status": "failed"}, secret=webhook_secret
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"
        assert response.json()["status"] == JobStatus.FAILED
        assert balance(session_factory, account_id) == 2

    def test_signed_success_completes(self, client, services, make_account, session_factory, webhook_secret):
        account_id = make_account(credits=2)
        result = services.dispatcher.submit(account_id, IMAGE, "waves", "premium")

        response = _send(
            client,
            "video_api",
            {"id": result.provider_job_id, "status": "succeeded", "output": "https://video.test/o.mp4"},
            secret=webhook_secret,
        )

        assert response.status_code == 200
        assert load_job(session_factory, result.job_id).status == JobStatus.COMPLETED

    def test_bad_signature_changes_nothing(self, client, services, make_account, session_factory, webhook_secret):
        account_id = make_account(credits=2)
        result = services.dispatcher.submit(account_id, IMAGE, "waves", "premium")

        response = _send(
            client, "video_api", {"id": result.provider_job_id, "status": "failed"}, signature="sha256=deadbeef"
        )

        assert response.status_code == 401
        assert load_job(session_factory, result.job_id).status == JobStatus.PROCESSING
        assert balance(session_factory, account_id) == 0

    def test_missing_signature(self, client, webhook_secret):
        assert _send(client, "video_api", {"id": "x", "status": "failed"}).status_code == 401

    def test_unsigned_accepted_without_secret(self, client, services, make_account, monkeypatch):
        monkeypatch.setattr(settings, "replicate_webhook_secret", "")
        result = services.dispatcher.submit(make_account(credits=1), IMAGE, "waves", "standard")

        response = _send(client, "replicate", {"id": result.provider_job_id, "status": "pending"})

        assert response.status_code == 200
        assert response.json()["outcome"] == "noop"

    def test_unknown_provider(self, client):
        assert _send(client, "runway", {"id": "x"}).status_code == 404

    def test_unknown_job(self, client, webhook_secret):
        response = _send(client, "video_api", {"id": "nope", "status": "failed"}, secret=webhook_secret)
        assert response.status_code == 404

    def test_invalid_json(self, client, monkeypatch):
        monkeypatch.setattr(settings, "replicate_webhook_secret", "")
        response = client.post("/webhooks/replicate", content=b"not json")
        assert response.status_code == 400
