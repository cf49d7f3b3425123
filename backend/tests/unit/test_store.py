import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from linkup.errors import StoreUnavailable
from linkup.infra import store


@pytest.mark.asyncio
async def test_commit_writes_every_node_and_publishes(fake_redis):
	pubsub = fake_redis.pubsub()
	await pubsub.subscribe(store.change_channel(store.friends("u1")), store.change_channel(store.friends("u2")))

	batch = store.WriteBatch()
	batch.set_field(store.friends("u1"), "u2", "1")
	batch.set_field(store.friends("u2"), "u1", "1")
	await store.commit(batch)

	assert await fake_redis.hget("friends/u1", "u2") == "1"
	assert await fake_redis.hget("friends/u2", "u1") == "1"
	channels = set()
	for _ in range(10):
		message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.2)
		if message:
			channels.add(message["channel"])
		if len(channels) == 2:
			break
	assert channels == {"changes:friends/u1", "changes:friends/u2"}
	await pubsub.aclose()


@pytest.mark.asyncio
async def test_empty_batch_is_noop(fake_redis):
	await store.commit(store.WriteBatch())
	assert await fake_redis.keys("*") == []


def test_set_fields_skips_empty_mapping():
	batch = store.WriteBatch()
	batch.set_fields("users/u1", {})
	assert len(batch) == 0
	assert batch.nodes == frozenset()


def test_node_paths():
	assert store.usernames("Alice") == "usernames/alice"
	assert store.chat_messages("global") == "chats/global/messages"
	assert store.change_channel("users/u1") == "changes:users/u1"


@pytest.mark.asyncio
async def test_transact_retries_after_concurrent_write(fake_redis):
	attempts = []

	async def _build(reader):
		value = int(await reader.hget("counters/x", "n") or 0)
		if not attempts:
			# another writer lands between our read and our commit
			await fake_redis.hset("counters/x", "n", 10)
		attempts.append(value)
		batch = store.WriteBatch()
		batch.set_field("counters/x", "n", value + 1)
		return batch, value + 1

	result = await store.transact("test", _build, "counters/x")

	assert attempts == [0, 10]
	assert result == 11
	assert await fake_redis.hget("counters/x", "n") == "11"


@pytest.mark.asyncio
async def test_transact_without_batch_writes_nothing(fake_redis):
	async def _build(reader):
		return None, "unchanged"

	assert await store.transact("noop", _build, "users/u1") == "unchanged"
	assert await fake_redis.exists("users/u1") == 0


@pytest.mark.asyncio
async def test_server_time_is_milliseconds():
	now = await store.server_time_ms()
	assert abs(now - int(time.time() * 1000)) < 5_000


@pytest.mark.asyncio
async def test_read_errors_become_store_unavailable(fake_redis, monkeypatch):
	async def _boom(*args, **kwargs):
		raise RedisConnectionError("down")

	monkeypatch.setattr(fake_redis, "hgetall", _boom)
	with pytest.raises(StoreUnavailable):
		await store.read_hash("users/u1")
