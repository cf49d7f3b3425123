import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from linkup.domain.identity import service as identity_service
from linkup.infra.redis import redis_client, set_redis_client
from linkup.live.manager import SubscriptionManager
from linkup.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Short poll and retry windows so live tests settle quickly."""
	original = (
		settings.environment,
		settings.subscription_poll_seconds,
		settings.subscription_retry_initial_seconds,
		settings.subscription_retry_max_seconds,
	)
	settings.environment = "dev"
	settings.subscription_poll_seconds = 0.05
	settings.subscription_retry_initial_seconds = 0.01
	settings.subscription_retry_max_seconds = 0.05
	try:
		yield
	finally:
		(
			settings.environment,
			settings.subscription_poll_seconds,
			settings.subscription_retry_initial_seconds,
			settings.subscription_retry_max_seconds,
		) = original


@pytest_asyncio.fixture
async def manager():
	live = SubscriptionManager()
	try:
		yield live
	finally:
		await live.shutdown()


@pytest_asyncio.fixture
async def profiles():
	"""alice (u1), bob (u2) and carol (u3)."""
	created = {}
	for uid, username in (("u1", "alice"), ("u2", "bob"), ("u3", "carol")):
		created[uid] = await identity_service.create_profile(uid, username, display_name=username.title())
	return created


@pytest.fixture
def eventually():
	async def _wait(predicate, timeout: float = 2.0, interval: float = 0.01):
		loop = asyncio.get_running_loop()
		deadline = loop.time() + timeout
		while not predicate():
			if loop.time() > deadline:
				raise AssertionError("condition not met in time")
			await asyncio.sleep(interval)

	return _wait


@pytest_asyncio.fixture
async def api_client():
	from linkup.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
