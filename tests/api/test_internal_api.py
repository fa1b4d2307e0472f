"""Tests for /internal operational endpoints."""
import pytest
from fastapi import HTTPException

from conftest import balance, load_job
from app.api.deps import _require_secret
from app.core.config import settings
from app.models.generation_job import JobStatus
from app.services.video_generation.base import ProviderStatus, ProviderUpdate

IMAGE = "https://img.test/cat.png"


class TestSweepEndpoint:
    def test_requires_secret(self, client):
        assert client.post("/internal/sweep").status_code == 401
        assert client.post("/internal/sweep", headers={"X-Cron-Secret": "wrong"}).status_code == 401

    def test_runs_one_tick(self, client, services, providers, make_account, session_factory):
        account_id = make_account(credits=1)
        result = services.dispatcher.submit(account_id, IMAGE, "waves", "standard")
        providers["replicate"].statuses[result.provider_job_id] = ProviderUpdate(status=ProviderStatus.FAILED)

        response = client.post("/internal/sweep", headers={"X-Cron-Secret": settings.cron_secret})

        assert response.status_code == 200
        assert response.json()["applied"] == 1
        assert balance(session_factory, account_id) == 1

    def test_unconfigured_secret_disables_endpoint(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "")
        assert client.post("/internal/sweep", headers={"X-Cron-Secret": ""}).status_code == 503


class TestReprocessEndpoint:
    def test_reprocess_completes_job(self, client, services, providers, make_account, session_factory):
        result = services.dispatcher.submit(make_account(credits=1), IMAGE, "waves", "standard")
        providers["replicate"].statuses[result.provider_job_id] = ProviderUpdate(
            status=ProviderStatus.SUCCEEDED, output=["https://delivery.test/v.mp4"]
        )

        response = client.post(
            f"/internal/jobs/{result.job_id}/reprocess",
            headers={"X-Process-Secret": settings.process_secret},
        )

        assert response.status_code == 200
        assert response.json()["status"] == JobStatus.COMPLETED
        assert load_job(session_factory, result.job_id).gif_url is not None

    def test_unknown_job(self, client):
        response = client.post("/internal/jobs/missing/reprocess", headers={"X-Process-Secret": settings.process_secret})
        assert response.status_code == 404

    def test_provider_error(self, client, services, providers, make_account):
        result = services.dispatcher.submit(make_account(credits=1), IMAGE, "waves", "standard")
        providers["replicate"].status_errors.add(result.provider_job_id)

        response = client.post(
            f"/internal/jobs/{result.job_id}/reprocess",
            headers={"X-Process-Secret": settings.process_secret},
        )

        assert response.status_code == 502


class TestPurchaseEndpoint:
    def _purchase(self, client, **body):
        return client.post(
            "/internal/credits/purchase",
            json=body,
            headers={"X-Payments-Secret": settings.payments_secret},
        )

    def test_purchase_is_idempotent(self, client, make_account, session_factory):
        account_id = make_account(credits=1)

        first = self._purchase(client, account_id=account_id, credits=10, payment_reference="ch_1")
        replay = self._purchase(client, account_id=account_id, credits=10, payment_reference="ch_1")

        assert first.json() == {"account_id": account_id, "applied": True, "balance": 11}
        assert replay.json() == {"account_id": account_id, "applied": False, "balance": 11}
        assert balance(session_factory, account_id) == 11

    def test_unknown_account(self, client):
        response = self._purchase(client, account_id="missing", credits=5, payment_reference="ch_2")
        assert response.status_code == 404

    def test_requires_secret(self, client, make_account):
        response = client.post(
            "/internal/credits/purchase",
            json={"account_id": make_account(), "credits": 5, "payment_reference": "ch_3"},
        )
        assert response.status_code == 401

    def test_non_positive_credits_rejected(self, client, make_account):
        response = self._purchase(client, account_id=make_account(), credits=0, payment_reference="ch_4")
        assert response.status_code == 422


class TestSecretHeaders:
    def test_non_ascii_secret_rejected(self):
        with pytest.raises(HTTPException) as exc:
            _require_secret("cron-secret", "crön-secret")
        assert exc.value.status_code == 401

    def test_non_ascii_header_is_401(self, client):
        response = client.post("/internal/sweep", headers={"X-Cron-Secret": "é".encode("latin-1")})
        assert response.status_code == 401
