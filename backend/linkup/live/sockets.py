"""Socket.IO namespace that streams live queries to connected clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import socketio

from linkup.domain.chat import stream
from linkup.domain.chat.models import Chat, Message
from linkup.domain.identity.models import UserProfile
from linkup.domain.identity.session import SessionIdentity
from linkup.domain.notifications.aggregator import Notification, NotificationFeed, unread_count
from linkup.domain.social.models import FriendRequest
from linkup.errors import InvalidArgument, LinkupError, Unauthenticated
from linkup.live import queries
from linkup.live.manager import Subscription, SubscriptionManager, SubscriptionScope
from linkup.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

TOPICS = ("friend_requests", "notifications", "messages", "friends", "blocked", "chat", "profile")


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


@dataclass
class _Connection:
	session: SessionIdentity
	scope: SubscriptionScope
	topics: Dict[str, Subscription] = field(default_factory=dict)
	feed: Optional[NotificationFeed] = None


class LiveNamespace(socketio.AsyncNamespace):
	"""Each connection is one session; its subscriptions die with it."""

	def __init__(self, manager: SubscriptionManager) -> None:
		super().__init__("/live")
		self._manager = manager
		self._connections: dict[str, _Connection] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		if not user_id:
			raise ConnectionRefusedError("missing user id")
		obs_metrics.socket_connected(self.namespace)
		session = SessionIdentity()
		bound = self._manager.bind_identity(session)
		await session.sign_in(user_id)
		self._connections[sid] = _Connection(session=session, scope=bound)
		await self.emit("live:ack", {"ok": True, "uid": user_id}, room=sid)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		connection = self._connections.pop(sid, None)
		if connection is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		await self._dispose(connection)

	async def on_subscribe(self, sid: str, payload: dict | None = None) -> dict:
		obs_metrics.socket_event(self.namespace, "subscribe")
		payload = payload or {}
		topic = str(payload.get("topic") or "")
		try:
			connection = self._require(sid)
			key = await self._subscribe(sid, connection, topic, payload)
		except LinkupError as exc:
			await self._emit_error(sid, topic, exc)
			return {"ok": False, "error": exc.reason}
		return {"ok": True, "topic": key}

	async def on_unsubscribe(self, sid: str, payload: dict | None = None) -> dict:
		obs_metrics.socket_event(self.namespace, "unsubscribe")
		payload = payload or {}
		connection = self._connections.get(sid)
		if connection is None:
			return {"ok": False, "error": "unauthenticated"}
		topic = str(payload.get("topic") or "")
		key = self._topic_key(topic, payload, connection.session.current_uid())
		subscription = connection.topics.pop(key, None)
		if subscription is not None:
			await subscription.cancel()
		if topic == "notifications" and connection.feed is not None:
			feed, connection.feed = connection.feed, None
			await feed.stop()
		return {"ok": True, "topic": key}

	async def on_mark_read(self, sid: str, payload: dict | None = None) -> dict:
		obs_metrics.socket_event(self.namespace, "mark_read")
		connection = self._connections.get(sid)
		if connection is None or connection.feed is None:
			return {"ok": False, "error": "not_subscribed"}
		notification_id = str((payload or {}).get("id") or "")
		await connection.feed.mark_read(notification_id)
		return {"ok": True, "unread": connection.feed.unread_count}

	async def on_mark_all_read(self, sid: str, payload: dict | None = None) -> dict:
		obs_metrics.socket_event(self.namespace, "mark_all_read")
		connection = self._connections.get(sid)
		if connection is None or connection.feed is None:
			return {"ok": False, "error": "not_subscribed"}
		await connection.feed.mark_all_read()
		return {"ok": True, "unread": connection.feed.unread_count}

	@staticmethod
	def _topic_key(topic: str, payload: dict, uid: Optional[str]) -> str:
		if topic in ("messages", "chat"):
			return f"{topic}:{payload.get('chatId') or ''}"
		if topic == "profile":
			return f"profile:{payload.get('uid') or uid or ''}"
		return topic

	def _require(self, sid: str) -> _Connection:
		connection = self._connections.get(sid)
		if connection is None or not connection.session.current_uid():
			raise Unauthenticated()
		return connection

	async def _subscribe(self, sid: str, connection: _Connection, topic: str, payload: dict) -> str:
		if topic not in TOPICS:
			raise InvalidArgument("unknown_topic")
		uid = connection.session.current_uid()
		key = self._topic_key(topic, payload, uid)
		if key in connection.topics:
			return key
		chat_id = str(payload.get("chatId") or "")
		if topic in ("messages", "chat"):
			if not chat_id:
				raise InvalidArgument("missing_chat_id")
			await stream.ensure_member(chat_id, uid)
		if topic == "messages":
			subscription = await stream.subscribe(
				self._manager,
				chat_id,
				lambda message: self._emit_message(sid, message),
				owner=uid,
			)
		elif topic == "chat":
			subscription = await self._manager.subscribe(
				queries.chat_query(chat_id, viewer_uid=uid, owner=uid),
				lambda chat: self._emit_chat(sid, chat),
			)
		elif topic == "profile":
			subscription = await self._manager.subscribe(
				queries.profile_query(str(payload.get("uid") or uid), owner=uid),
				lambda profile: self._emit_profile(sid, profile),
			)
		elif topic == "notifications":
			feed = NotificationFeed(self._manager, connection.session)
			feed.on_change(lambda items: self._emit_notifications(sid, items))
			connection.feed = feed
			subscription = await feed.start()
		elif topic == "friend_requests":
			subscription = await self._manager.subscribe(
				queries.friend_requests_query(uid),
				lambda requests: self._emit_requests(sid, requests),
			)
		elif topic == "friends":
			subscription = await self._manager.subscribe(
				queries.friends_query(uid),
				lambda uids: self._emit_uids(sid, "live:friends", uids),
			)
		else:
			subscription = await self._manager.subscribe(
				queries.blocked_query(uid),
				lambda uids: self._emit_uids(sid, "live:blocked", uids),
			)
		connection.scope.adopt(subscription)
		connection.topics[key] = subscription
		return key

	async def _emit(self, sid: str, event: str, data: Any) -> None:
		obs_metrics.socket_event(self.namespace, event)
		await self.emit(event, data, room=sid)

	async def _emit_error(self, sid: str, topic: str, exc: LinkupError) -> None:
		logger.info("live subscribe rejected", extra={"topic": topic, "reason": exc.reason})
		await self._emit(sid, "live:error", {"topic": topic, "reason": exc.reason})

	async def _emit_message(self, sid: str, message: Message) -> None:
		await self._emit(sid, "live:message", message.to_dict())

	async def _emit_chat(self, sid: str, chat: Optional[Chat]) -> None:
		await self._emit(sid, "live:chat", {"chat": chat.to_dict() if chat else None})

	async def _emit_profile(self, sid: str, profile: Optional[UserProfile]) -> None:
		await self._emit(sid, "live:profile", {"profile": profile.to_dict() if profile else None})

	async def _emit_notifications(self, sid: str, items: List[Notification]) -> None:
		await self._emit(
			sid,
			"live:notifications",
			{"items": [item.to_dict() for item in items], "unread": unread_count(items)},
		)

	async def _emit_requests(self, sid: str, requests: List[FriendRequest]) -> None:
		await self._emit(sid, "live:friend_requests", {"items": [request.to_dict() for request in requests]})

	async def _emit_uids(self, sid: str, event: str, uids: List[str]) -> None:
		await self._emit(sid, event, {"uids": list(uids)})

	async def _dispose(self, connection: _Connection) -> None:
		try:
			if connection.feed is not None:
				await connection.feed.stop()
			connection.topics.clear()
		finally:
			await connection.scope.dispose()
		await connection.session.sign_out()

	async def shutdown(self) -> None:
		connections = list(self._connections.values())
		self._connections.clear()
		for connection in connections:
			await self._dispose(connection)
