"""Shared store layout over Redis.

Every logical node of the store (``users/{uid}``, ``friends/{uid}``,
``chats/{chat_id}/messages`` ...) is a single Redis key; the trailing path
segment (other uid, sender uid, message id) is a hash field. Mutations that
touch more than one node are queued on a :class:`WriteBatch` and applied in a
single ``MULTI/EXEC``. Each touched node also gets a ``PUBLISH`` on its change
channel inside the same transaction, so listeners are never told about a write
that has not been applied.

Writes that depend on current state go through :func:`transact`, which
``WATCH``es the nodes it reads and retries when another writer got there first.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from redis.exceptions import RedisError, WatchError

from linkup.errors import StoreUnavailable
from linkup.infra.redis import redis_client
from linkup.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHANGE_CHANNEL_PREFIX = "changes:"
MAX_TX_ATTEMPTS = 16


def users(uid: str) -> str:
	return f"users/{uid}"


def usernames(username: str) -> str:
	return f"usernames/{username.lower()}"


def friends(uid: str) -> str:
	return f"friends/{uid}"


def friend_requests(to_uid: str) -> str:
	return f"friend_requests/{to_uid}"


def blocked_users(blocker_uid: str) -> str:
	return f"blocked_users/{blocker_uid}"


def users_blocked_by(blocked_uid: str) -> str:
	return f"users_blocked_by/{blocked_uid}"


def chat(chat_id: str) -> str:
	return f"chats/{chat_id}"


def chat_members(chat_id: str) -> str:
	return f"chats/{chat_id}/members"


def chat_messages(chat_id: str) -> str:
	return f"chats/{chat_id}/messages"


def chat_timeline(chat_id: str) -> str:
	"""Sorted index of message ids; score is the per-chat sequence number."""
	return f"chats/{chat_id}/timeline"


def chat_clock(chat_id: str) -> str:
	"""Last assigned timestamp and sequence for a chat's message stream."""
	return f"chats/{chat_id}/clock"


def change_channel(node: str) -> str:
	return f"{CHANGE_CHANNEL_PREFIX}{node}"


def dumps(value: Mapping[str, Any]) -> str:
	return json.dumps(value, separators=(",", ":"), sort_keys=True)


def loads(raw: Optional[str]) -> Optional[Dict[str, Any]]:
	if raw is None:
		return None
	return json.loads(raw)


class WriteBatch:
	"""Writes against several nodes that must land together or not at all."""

	def __init__(self) -> None:
		self._ops: List[Callable[[Any], Any]] = []
		self._nodes: set[str] = set()

	def __len__(self) -> int:
		return len(self._ops)

	@property
	def nodes(self) -> frozenset[str]:
		return frozenset(self._nodes)

	def set_field(self, node: str, field: str, value: Any) -> "WriteBatch":
		self._ops.append(lambda pipe: pipe.hset(node, field, value))
		self._nodes.add(node)
		return self

	def set_fields(self, node: str, mapping: Mapping[str, Any]) -> "WriteBatch":
		if mapping:
			payload = dict(mapping)
			self._ops.append(lambda pipe: pipe.hset(node, mapping=payload))
			self._nodes.add(node)
		return self

	def delete_field(self, node: str, field: str) -> "WriteBatch":
		self._ops.append(lambda pipe: pipe.hdel(node, field))
		self._nodes.add(node)
		return self

	def increment(self, node: str, field: str, amount: int = 1) -> "WriteBatch":
		self._ops.append(lambda pipe: pipe.hincrby(node, field, amount))
		self._nodes.add(node)
		return self

	def set_value(self, node: str, value: str) -> "WriteBatch":
		self._ops.append(lambda pipe: pipe.set(node, value))
		self._nodes.add(node)
		return self

	def add_ordered(self, node: str, member: str, score: float) -> "WriteBatch":
		self._ops.append(lambda pipe: pipe.zadd(node, {member: score}))
		self._nodes.add(node)
		return self

	def apply(self, pipe: Any) -> None:
		for op in self._ops:
			op(pipe)
		for node in sorted(self._nodes):
			pipe.publish(change_channel(node), node)


async def commit(batch: WriteBatch) -> None:
	"""Apply ``batch`` atomically. An empty batch is a no-op."""
	if not batch:
		return
	try:
		async with redis_client.pipeline(transaction=True) as pipe:
			batch.apply(pipe)
			await pipe.execute()
	except RedisError as exc:
		logger.warning("store commit failed", extra={"nodes": sorted(batch.nodes)})
		raise StoreUnavailable() from exc


async def transact(
	op: str,
	build: Callable[[Any], Awaitable[Tuple[Optional[WriteBatch], T]]],
	*watch_nodes: str,
) -> T:
	"""Run a read-then-write transaction against the watched nodes.

	``build`` receives a pipeline in immediate mode, reads whatever it needs and
	returns ``(batch, result)``. The batch is committed only if none of the
	watched nodes changed in the meantime; otherwise ``build`` runs again.
	Domain errors raised by ``build`` propagate unchanged.
	"""
	try:
		async with redis_client.pipeline(transaction=True) as pipe:
			for _ in range(MAX_TX_ATTEMPTS):
				await pipe.watch(*watch_nodes)
				batch, result = await build(pipe)
				if not batch:
					await pipe.reset()
					return result
				pipe.multi()
				batch.apply(pipe)
				try:
					await pipe.execute()
				except WatchError:
					obs_metrics.inc_store_retry(op)
					logger.debug("store transaction %s retried after concurrent write", op)
					continue
				return result
	except RedisError as exc:
		raise StoreUnavailable() from exc
	logger.warning("store transaction %s gave up after %s attempts", op, MAX_TX_ATTEMPTS)
	raise StoreUnavailable("contention")


async def server_time_ms(reader: Any = None) -> int:
	"""Current time according to the store, in milliseconds."""
	source = reader if reader is not None else redis_client
	try:
		seconds, micros = await source.time()
	except RedisError as exc:
		raise StoreUnavailable() from exc
	return int(seconds) * 1000 + int(micros) // 1000


async def read_hash(node: str) -> Dict[str, str]:
	try:
		return await redis_client.hgetall(node)
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def read_field(node: str, field: str) -> Optional[str]:
	try:
		return await redis_client.hget(node, field)
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def field_exists(node: str, field: str) -> bool:
	try:
		return bool(await redis_client.hexists(node, field))
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def read_value(node: str) -> Optional[str]:
	try:
		return await redis_client.get(node)
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def read_ordered(node: str, start: int = 0, end: int = -1) -> List[str]:
	try:
		return await redis_client.zrange(node, start, end)
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def read_ordered_after(node: str, score: float) -> List[str]:
	"""Members scored strictly above ``score``, ascending."""
	try:
		return await redis_client.zrangebyscore(node, f"({score}", "+inf")
	except RedisError as exc:
		raise StoreUnavailable() from exc


async def read_fields(node: str, fields: List[str]) -> List[Optional[str]]:
	if not fields:
		return []
	try:
		return await redis_client.hmget(node, fields)
	except RedisError as exc:
		raise StoreUnavailable() from exc
