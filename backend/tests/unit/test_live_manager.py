import asyncio

import pytest

from linkup.domain.identity import SessionIdentity
from linkup.errors import InvalidArgument, StoreUnavailable
from linkup.infra import store
from linkup.live import queries
from linkup.live.manager import LiveQuery, SubscriptionScope

NODE = "counters/a"


def _counter_query(owner=None, loads=None):
	async def _load():
		if loads is not None:
			loads.append(1)
		return int(await store.read_field(NODE, "n") or 0)

	return LiveQuery(key="counter:a", nodes=(NODE,), load=_load, owner=owner)


async def _bump(value):
	batch = store.WriteBatch()
	batch.set_field(NODE, "n", value)
	await store.commit(batch)


@pytest.mark.asyncio
async def test_snapshot_delivered_on_registration(manager):
	await _bump(3)
	seen = []

	await manager.subscribe(_counter_query(), seen.append)

	assert seen == [3]


@pytest.mark.asyncio
async def test_one_listener_per_query_key(manager, eventually):
	loads = []
	first, second = [], []

	await manager.subscribe(_counter_query(loads=loads), first.append)
	await manager.subscribe(_counter_query(loads=loads), second.append)

	assert manager.listener_count() == 1
	assert len(loads) == 1
	assert first == [0]
	assert second == [0]

	await _bump(7)
	await eventually(lambda: first[-1] == 7 and second[-1] == 7)


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(manager):
	seen = []

	async def _callback(value):
		await asyncio.sleep(0)
		seen.append(value)

	await manager.subscribe(_counter_query(), _callback)

	assert seen == [0]


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_stops_listener(manager):
	subscription = await manager.subscribe(_counter_query(), lambda value: None)

	await subscription.cancel()
	await subscription.cancel()

	assert subscription.active is False
	assert manager.listener_count() == 0


@pytest.mark.asyncio
async def test_no_delivery_after_cancel(manager, eventually):
	kept, dropped = [], []
	await manager.subscribe(_counter_query(), kept.append)
	cancelled = await manager.subscribe(_counter_query(), dropped.append)

	await cancelled.cancel()
	await _bump(1)
	await eventually(lambda: kept[-1] == 1)

	assert dropped == [0]
	assert manager.listener_count() == 1


@pytest.mark.asyncio
async def test_cancel_from_inside_callback(manager, eventually):
	seen = []
	holder = {}

	async def _callback(value):
		seen.append(value)
		if value == 1:
			await holder["sub"].cancel()

	holder["sub"] = await manager.subscribe(_counter_query(), _callback)
	await _bump(1)
	await eventually(lambda: not holder["sub"].active)
	await _bump(2)
	await asyncio.sleep(0.1)

	assert seen == [0, 1]


@pytest.mark.asyncio
async def test_identity_change_releases_only_that_sessions_subscriptions(manager):
	tab_a, tab_b = SessionIdentity(), SessionIdentity()
	scope_a = manager.bind_identity(tab_a)
	scope_b = manager.bind_identity(tab_b)
	await tab_a.sign_in("u1")
	await tab_b.sign_in("u1")
	mine = await scope_a.subscribe(_counter_query(owner="u1"), lambda value: None)
	sibling = await scope_b.subscribe(_counter_query(owner="u1"), lambda value: None)

	await tab_a.sign_out()

	assert mine.active is False
	assert sibling.active is True
	assert manager.handles("u1") == [sibling]


@pytest.mark.asyncio
async def test_bound_scope_is_reusable_after_switching_user(manager):
	session = SessionIdentity()
	scope = manager.bind_identity(session)
	await session.sign_in("u1")
	first = await scope.subscribe(_counter_query(owner="u1"), lambda value: None)

	await session.sign_in("u2")
	second = await scope.subscribe(_counter_query(owner="u2"), lambda value: None)

	assert first.active is False
	assert second.active is True
	await scope.dispose()
	await session.sign_out()
	assert second.active is False
	assert manager.listener_count() == 0


@pytest.mark.asyncio
async def test_failing_load_is_raised_and_listener_discarded(manager):
	calls = []

	async def _broken():
		calls.append(1)
		if len(calls) == 1:
			raise ValueError("bad query")
		return "recovered"

	query = LiveQuery(key="broken", nodes=("broken/node",), load=_broken)

	with pytest.raises(ValueError):
		await manager.subscribe(query, lambda value: None)
	assert manager.listener_count() == 0
	assert manager.handles() == []

	seen = []
	subscription = await manager.subscribe(query, seen.append)
	assert seen == ["recovered"]
	assert subscription.active is True


@pytest.mark.asyncio
async def test_chat_query_with_invalid_id_is_rejected(manager):
	with pytest.raises(InvalidArgument):
		await manager.subscribe(queries.chat_query("bogus"), lambda value: None)

	assert manager.listener_count() == 0


@pytest.mark.asyncio
async def test_scope_disposes_on_error(manager):
	captured = []
	with pytest.raises(RuntimeError):
		async with SubscriptionScope(manager) as scope:
			captured.append(await scope.subscribe(_counter_query(), lambda value: None))
			raise RuntimeError("component crashed")

	assert captured[0].active is False
	assert manager.listener_count() == 0


@pytest.mark.asyncio
async def test_store_outage_is_retried_without_dropping_subscription(manager, eventually):
	calls = []

	async def _flaky():
		calls.append(1)
		if len(calls) == 1:
			raise StoreUnavailable()
		return "ok"

	seen = []
	query = LiveQuery(key="flaky", nodes=("flaky/node",), load=_flaky)

	subscription = await manager.subscribe(query, seen.append)

	assert subscription.active is True
	await eventually(lambda: seen == ["ok"])
	assert len(calls) == 2


@pytest.mark.asyncio
async def test_shutdown_deactivates_everything(manager):
	subscription = await manager.subscribe(_counter_query(), lambda value: None)

	await manager.shutdown()

	assert subscription.active is False
	assert manager.listener_count() == 0
	await subscription.cancel()
