"""Notifications derived from pending friend requests.

Nothing here is persisted. The list is a projection of two inputs: the live
set of requests addressed to the user and the ids the user acknowledged in
this session. Notification ids are sender uids.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Awaitable, Callable, Iterable, List, Optional, Set, Union

from linkup.domain.identity.session import SessionIdentity, require_uid
from linkup.domain.social.models import FriendRequest
from linkup.live import queries
from linkup.live.manager import Subscription, SubscriptionManager

logger = logging.getLogger(__name__)

FeedListener = Callable[[List["Notification"]], Union[None, Awaitable[None]]]


class NotificationKind(str, Enum):
	FRIEND_REQUEST = "friend_request"
	SYSTEM = "system"
	MESSAGE = "message"


@dataclass(slots=True, frozen=True)
class Notification:
	id: str
	kind: NotificationKind
	title: str
	description: str
	timestamp: int
	link: Optional[str] = None
	read: bool = False

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"kind": self.kind.value,
			"title": self.title,
			"description": self.description,
			"timestamp": self.timestamp,
			"link": self.link,
			"read": self.read,
		}


def _from_request(request: FriendRequest, acknowledged: AbstractSet[str]) -> Notification:
	username = request.sender_username or request.from_uid
	return Notification(
		id=request.from_uid,
		kind=NotificationKind.FRIEND_REQUEST,
		title="New friend request",
		description=f"@{username} sent you a friend request.",
		timestamp=request.timestamp,
		link=f"/profile/{username}",
		read=request.from_uid in acknowledged,
	)


def project(requests: Iterable[FriendRequest], acknowledged: AbstractSet[str]) -> List[Notification]:
	"""Newest first; equal timestamps fall back to id order."""
	notifications = [_from_request(request, acknowledged) for request in requests]
	notifications.sort(key=lambda item: (-item.timestamp, item.id))
	return notifications


def unread_count(notifications: Iterable[Notification]) -> int:
	return sum(1 for item in notifications if not item.read)


class NotificationFeed:
	"""Keeps the projection current for the signed-in user of ``session``."""

	def __init__(self, manager: SubscriptionManager, session: SessionIdentity) -> None:
		self._manager = manager
		self._session = session
		self._requests: List[FriendRequest] = []
		self._acknowledged: Set[str] = set()
		self._notifications: List[Notification] = []
		self._listeners: List[FeedListener] = []
		self._subscription: Optional[Subscription] = None
		self._unbind: Optional[Callable[[], None]] = None

	@property
	def notifications(self) -> List[Notification]:
		return list(self._notifications)

	@property
	def unread_count(self) -> int:
		return unread_count(self._notifications)

	def on_change(self, listener: FeedListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _remove

	async def start(self) -> Subscription:
		"""Follow the signed-in user, and whoever signs in on the session after them."""
		uid = require_uid(self._session)
		await self._reset()
		if self._unbind is None:
			self._unbind = self._session.on_change(self._on_identity_change)
		return await self._follow(uid)

	async def stop(self) -> None:
		unbind, self._unbind = self._unbind, None
		if unbind is not None:
			unbind()
		await self._reset()

	async def _follow(self, uid: str) -> Subscription:
		self._subscription = await self._manager.subscribe(
			queries.friend_requests_query(uid),
			self._on_requests,
		)
		return self._subscription

	async def _reset(self) -> None:
		subscription, self._subscription = self._subscription, None
		if subscription is not None:
			await subscription.cancel()
		self._requests = []
		self._acknowledged.clear()
		self._notifications = []

	async def _on_identity_change(self, previous: Optional[str], current: Optional[str]) -> None:
		await self._reset()
		await self._publish()
		if current:
			await self._follow(current)

	async def mark_read(self, notification_id: str) -> None:
		if notification_id in self._acknowledged:
			return
		self._acknowledged.add(notification_id)
		await self._refresh()

	async def mark_all_read(self) -> None:
		self._acknowledged.update(item.id for item in self._notifications)
		await self._refresh()

	async def _on_requests(self, requests: List[FriendRequest]) -> None:
		self._requests = list(requests or [])
		await self._refresh()

	async def _refresh(self) -> None:
		pending = {request.from_uid for request in self._requests}
		# acknowledgements only live as long as the request they refer to
		self._acknowledged &= pending
		self._notifications = project(self._requests, self._acknowledged)
		await self._publish()

	async def _publish(self) -> None:
		for listener in list(self._listeners):
			result = listener(self.notifications)
			if inspect.isawaitable(result):
				await result
