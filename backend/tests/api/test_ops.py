from unittest.mock import AsyncMock, MagicMock

import pytest

from powsync.infra import postgres
from powsync.settings import settings


@pytest.fixture
def metrics_settings():
	original_public = settings.obs_metrics_public
	original_token = settings.obs_admin_token
	try:
		yield settings
	finally:
		settings.obs_metrics_public = original_public
		settings.obs_admin_token = original_token


@pytest.mark.asyncio
async def test_liveness(api_client):
	response = await api_client.get("/health/live")
	assert response.status_code == 200
	assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readiness_reports_postgres_and_migrations(api_client, monkeypatch):
	mock_conn = AsyncMock()
	mock_conn.fetchval.return_value = "0001"
	mock_pool = MagicMock()
	mock_pool.acquire.return_value.__aenter__.return_value = mock_conn

	async def _mock_get_pool():
		return mock_pool

	monkeypatch.setattr(postgres, "get_pool", _mock_get_pool)

	response = await api_client.get("/health/ready")

	assert response.status_code == 200
	payload = response.json()
	assert payload["status"] == "ok"
	assert payload["checks"]["migrations"]["version"] == "0001"


@pytest.mark.asyncio
async def test_readiness_degrades_without_migrations(api_client, monkeypatch):
	mock_conn = AsyncMock()
	mock_conn.fetchval.return_value = None
	mock_pool = MagicMock()
	mock_pool.acquire.return_value.__aenter__.return_value = mock_conn
	monkeypatch.setattr(postgres, "get_pool", AsyncMock(return_value=mock_pool))

	response = await api_client.get("/health/ready")

	assert response.status_code == 503
	assert response.json()["checks"]["migrations"] == {"ok": False, "error": "no_migrations"}


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client, metrics_settings):
	metrics_settings.obs_metrics_public = False
	metrics_settings.obs_admin_token = "s3cret"

	response = await api_client.get("/metrics")
	assert response.status_code == 403

	response = await api_client.get("/metrics", headers={"X-Admin-Token": "s3cret"})
	assert response.status_code == 200
	assert "powsync_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_metrics_count_reconciliations(api_client, metrics_settings):
	metrics_settings.obs_metrics_public = True

	await api_client.post("/api/pow/edit", json={"ownerId": "owner-1", "records": [{"title": "x"}]})
	response = await api_client.get("/metrics")

	assert response.status_code == 200
	assert 'powsync_pow_reconcile_total{outcome="applied"}' in response.text
	assert 'powsync_pow_operations_total{kind="create"}' in response.text
