import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from powsync.api import pow as pow_api
from powsync.domain.pow.models import PowRecord
from powsync.domain.pow.repo import InMemoryPowRepository
from powsync.domain.pow.service import PowSyncService
from powsync.infra import postgres
from powsync.main import app

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture
def make_record():
	"""Build stored records; later calls get later timestamps."""
	counter = {"n": 0}

	def _make(record_id: str, owner_id: str = "owner-1", **fields) -> PowRecord:
		counter["n"] += 1
		values = {
			"id": record_id,
			"owner_id": owner_id,
			"title": f"title {record_id}",
			"description": f"description {record_id}",
			"link": f"https://example.com/{record_id}",
			"skills": ["python"],
			"sub_skills": ["asyncio"],
			"created_at": BASE_TIME + timedelta(minutes=counter["n"]),
		}
		values.update(fields)
		return PowRecord.model_validate(values)

	return _make


@pytest.fixture
def pow_repo():
	return InMemoryPowRepository()


@pytest.fixture
def pow_service(pow_repo):
	ids = iter(f"new-{n}" for n in range(1, 1000))
	return PowSyncService(pow_repo, max_records=50, new_id=lambda: next(ids))


@pytest_asyncio.fixture
async def api_client(pow_service):
	app.dependency_overrides[pow_api.get_pow_service_dep] = lambda: pow_service
	transport = ASGITransport(app=app)
	try:
		async with AsyncClient(transport=transport, base_url="http://testserver") as client:
			yield client
	finally:
		app.dependency_overrides.pop(pow_api.get_pow_service_dep, None)
