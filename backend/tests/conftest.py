import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

os.environ.setdefault("SEARCH_BACKEND", "memory")

from roundsearch.domain.rounds.service import reset_memory_state
from roundsearch.infra import postgres
from roundsearch.main import app
from roundsearch.settings import settings


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Run every test against the in-memory store with unsampled logs."""
	original_env = settings.environment
	original_backend = settings.search_backend
	original_sampling = settings.obs_log_sampling_rate_info
	settings.environment = "dev"
	settings.search_backend = "memory"
	settings.obs_log_sampling_rate_info = 1.0
	try:
		yield
	finally:
		settings.environment = original_env
		settings.search_backend = original_backend
		settings.obs_log_sampling_rate_info = original_sampling


@pytest_asyncio.fixture(autouse=True)
async def clear_memory_state():
	await reset_memory_state()
	yield
	await reset_memory_state()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
