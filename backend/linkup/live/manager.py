"""Live subscription registry.

One store listener runs per distinct query key, however many handles are
attached to it. A listener subscribes to the change channels of the nodes its
query reads, loads a snapshot, and re-loads whenever one of those nodes is
written. Every handle gets the latest snapshot as soon as it registers.

A cancelled handle never sees another callback: the ``active`` flag is checked
under the listener's delivery lock right before each call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from redis.exceptions import RedisError

from linkup.errors import StoreUnavailable
from linkup.infra import store
from linkup.infra.redis import redis_client
from linkup.obs import metrics as obs_metrics
from linkup.settings import settings

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class LiveQuery:
	"""A standing read: which nodes it depends on and how to load it."""

	key: str
	nodes: Tuple[str, ...]
	load: Callable[[], Awaitable[Any]]
	owner: Optional[str] = None


@dataclass(eq=False)
class _Listener:
	query: LiveQuery
	handles: List["Subscription"] = field(default_factory=list)
	lock: asyncio.Lock = field(default_factory=asyncio.Lock)
	attempted: asyncio.Event = field(default_factory=asyncio.Event)
	snapshot: Any = None
	version: int = 0
	error: Optional[BaseException] = None
	task: Optional[asyncio.Task] = None


class Subscription:
	"""Handle returned to a subscriber. ``cancel`` may be called any number of times."""

	def __init__(self, manager: "SubscriptionManager", listener: _Listener, callback: SnapshotCallback, owner: Optional[str]) -> None:
		self._manager = manager
		self._listener = listener
		self._callback = callback
		self.owner = owner
		self.active = True
		self.version = 0

	async def cancel(self) -> None:
		if not self.active:
			return
		self.active = False
		obs_metrics.live_subscription_closed()
		await self._manager._release(self)


class SubscriptionManager:
	def __init__(self) -> None:
		self._listeners: Dict[str, _Listener] = {}
		self._lock = asyncio.Lock()
		self._bound_scopes: List["SubscriptionScope"] = []

	def listener_count(self) -> int:
		return len(self._listeners)

	def handles(self, owner: Optional[str] = None) -> List[Subscription]:
		return [
			handle
			for listener in self._listeners.values()
			for handle in listener.handles
			if owner is None or handle.owner == owner
		]

	async def subscribe(self, query: LiveQuery, callback: SnapshotCallback) -> Subscription:
		"""Attach ``callback`` to the listener for ``query.key``, starting one if needed.

		Returns once the first snapshot has been delivered. If the store is down
		the handle is returned anyway and receives the snapshot when the listener
		reconnects. Any other load failure is raised here and the listener is
		discarded, so the next subscriber starts a fresh one.
		"""
		async with self._lock:
			listener = self._listeners.get(query.key)
			if listener is None:
				listener = _Listener(query=query)
				self._listeners[query.key] = listener
				listener.task = asyncio.create_task(self._run(listener), name=f"live:{query.key}")
				obs_metrics.live_listener_started()
			handle = Subscription(self, listener, callback, query.owner)
			listener.handles.append(handle)
		obs_metrics.live_subscription_opened()
		bind = getattr(callback, "bind", None)
		if callable(bind):
			bind(handle)
		await listener.attempted.wait()
		if listener.error is not None:
			raise listener.error
		async with listener.lock:
			await self._deliver(listener, handle)
		return handle

	def bind_identity(self, session) -> "SubscriptionScope":
		"""Return a scope whose subscriptions are dropped when ``session`` changes hands.

		Only handles acquired through the returned scope are affected; another
		session signed in as the same uid keeps its own.
		"""
		scope = SubscriptionScope(self, session)
		self._bound_scopes.append(scope)
		return scope

	async def shutdown(self) -> None:
		"""Cancel all listeners (used on application shutdown/tests)."""
		for scope in list(self._bound_scopes):
			scope.unbind()
		self._bound_scopes.clear()
		async with self._lock:
			listeners = list(self._listeners.values())
			self._listeners.clear()
		for listener in listeners:
			for handle in listener.handles:
				if handle.active:
					handle.active = False
					obs_metrics.live_subscription_closed()
			listener.handles.clear()
			if listener.task:
				listener.task.cancel()
		for listener in listeners:
			await self._await_stopped(listener)

	async def _release(self, handle: Subscription) -> None:
		listener = handle._listener
		async with self._lock:
			if handle in listener.handles:
				listener.handles.remove(handle)
			if listener.handles or self._listeners.get(listener.query.key) is not listener:
				return
			self._listeners.pop(listener.query.key, None)
			if listener.task:
				listener.task.cancel()
		await self._await_stopped(listener)

	async def _evict(self, listener: _Listener) -> None:
		async with self._lock:
			if self._listeners.get(listener.query.key) is listener:
				self._listeners.pop(listener.query.key)
			handles = list(listener.handles)
			listener.handles.clear()
		for handle in handles:
			if handle.active:
				handle.active = False
				obs_metrics.live_subscription_closed()

	def _unregister(self, scope: "SubscriptionScope") -> None:
		if scope in self._bound_scopes:
			self._bound_scopes.remove(scope)

	async def _await_stopped(self, listener: _Listener) -> None:
		task = listener.task
		if task is None:
			return
		# a callback may cancel its own subscription from inside the listener task
		if task is asyncio.current_task():
			return
		with suppress(asyncio.CancelledError):
			await task

	async def _deliver(self, listener: _Listener, handle: Subscription) -> None:
		if not handle.active or handle.version >= listener.version:
			return
		handle.version = listener.version
		try:
			result = handle._callback(listener.snapshot)
			if inspect.isawaitable(result):
				await result
		except asyncio.CancelledError:
			raise
		except Exception:
			logger.exception("live callback failed for %s", listener.query.key)

	async def _reload(self, listener: _Listener) -> None:
		snapshot = await listener.query.load()
		async with listener.lock:
			listener.snapshot = snapshot
			listener.version += 1
			for handle in list(listener.handles):
				await self._deliver(listener, handle)
		listener.attempted.set()

	async def _run(self, listener: _Listener) -> None:
		query = listener.query
		channels = [store.change_channel(node) for node in query.nodes]
		initial = max(0.01, float(settings.subscription_retry_initial_seconds))
		ceiling = max(initial, float(settings.subscription_retry_max_seconds))
		poll = max(0.01, float(settings.subscription_poll_seconds))
		delay = initial
		try:
			while True:
				pubsub = redis_client.pubsub()
				try:
					# subscribe before loading so no write between the two is missed
					await pubsub.subscribe(*channels)
					await self._reload(listener)
					delay = initial
					while True:
						message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=poll)
						if message is None:
							continue
						while await pubsub.get_message(ignore_subscribe_messages=True, timeout=0) is not None:
							pass
						await self._reload(listener)
				except (RedisError, StoreUnavailable):
					listener.attempted.set()
					obs_metrics.inc_live_retry()
					logger.warning("live listener %s lost the store, retrying in %.2fs", query.key, delay)
				finally:
					with suppress(RedisError):
						await pubsub.aclose()
				await asyncio.sleep(delay)
				delay = min(delay * 2, ceiling)
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			logger.exception("live listener %s failed", query.key)
			listener.error = exc
			await self._evict(listener)
		finally:
			listener.attempted.set()
			obs_metrics.live_listener_stopped()


class SubscriptionScope:
	"""Owns a group of subscriptions and cancels all of them on exit, error or not.

	A scope created with a session also releases its subscriptions whenever
	that session's principal changes.
	"""

	def __init__(self, manager: SubscriptionManager, session=None) -> None:
		self._manager = manager
		self._subscriptions: List[Subscription] = []
		self._remover: Optional[Callable[[], None]] = None
		if session is not None:
			self._remover = session.on_change(self._on_identity_change)

	async def subscribe(self, query: LiveQuery, callback: SnapshotCallback) -> Subscription:
		return self.adopt(await self._manager.subscribe(query, callback))

	def adopt(self, subscription: Subscription) -> Subscription:
		self._subscriptions.append(subscription)
		return subscription

	def unbind(self) -> None:
		remover, self._remover = self._remover, None
		if remover is not None:
			remover()
		self._manager._unregister(self)

	async def release(self) -> int:
		"""Cancel everything acquired so far; the scope stays usable."""
		subscriptions, self._subscriptions = self._subscriptions, []
		for subscription in subscriptions:
			await subscription.cancel()
		return len(subscriptions)

	async def dispose(self) -> None:
		self.unbind()
		await self.release()

	async def _on_identity_change(self, previous: Optional[str], current: Optional[str]) -> None:
		if previous and previous != current:
			released = await self.release()
			if released:
				logger.info("live subscriptions released", extra={"uid": previous, "count": released})

	async def __aenter__(self) -> "SubscriptionScope":
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		await self.dispose()
