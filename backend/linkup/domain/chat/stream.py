"""Append-only message log per chat.

The store is the only ordering authority. An append reads the chat clock
under ``WATCH`` and assigns ``ts = max(server_now, last_ts)`` and
``seq = last_seq + 1``, so a message accepted later never sorts before one
accepted earlier, whichever node or client wrote it.
"""

from __future__ import annotations

import inspect
import logging
from bisect import bisect_right
from typing import Awaitable, Callable, Iterable, List, Mapping, Optional, Union

import ulid

from linkup.domain.chat import registry
from linkup.domain.chat.attachments import normalize_attachments
from linkup.domain.chat.exceptions import EmptyMessage, NotAMember
from linkup.domain.chat.models import SYSTEM_SENDER, Message
from linkup.domain.identity import service as identity_service
from linkup.errors import InvalidArgument, Unauthenticated
from linkup.infra import store
from linkup.live.manager import LiveQuery, Subscription, SubscriptionManager
from linkup.obs import metrics as obs_metrics
from linkup.settings import settings

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Message], Union[None, Awaitable[None]]]


def _clock_values(raw: Mapping[str, str]) -> tuple[int, int]:
	return int(raw.get("ts") or 0), int(raw.get("seq") or 0)


def _stage(batch: store.WriteBatch, message: Message) -> None:
	chat_id = message.chat_id
	batch.set_fields(store.chat_clock(chat_id), {"ts": message.server_timestamp, "seq": message.seq})
	batch.set_field(store.chat_messages(chat_id), message.id, store.dumps(message.to_record()))
	batch.add_ordered(store.chat_timeline(chat_id), message.id, message.seq)


def stage_system_message(batch: store.WriteBatch, chat_id: str, content: str, timestamp: int) -> Message:
	"""Queue the creation notice of a brand new chat; it is always entry one."""
	message = Message(
		id=str(ulid.new()),
		chat_id=chat_id,
		sender_uid=SYSTEM_SENDER,
		sender_display_name="System",
		avatar_ref="",
		content=content,
		server_timestamp=timestamp,
		seq=1,
	)
	_stage(batch, message)
	return message


async def ensure_member(chat_id: str, uid: str) -> None:
	chat = await registry.get_chat(chat_id, viewer_uid=uid)
	if not await registry.is_member(chat, uid):
		raise NotAMember()


async def append_message(
	chat_id: str,
	sender_uid: Optional[str],
	content: str,
	attachments: Optional[Iterable[Mapping[str, object]]] = None,
) -> Message:
	if not sender_uid:
		raise Unauthenticated()
	text = (content or "").strip()
	metas = tuple(normalize_attachments(attachments))
	if not text and not metas:
		raise EmptyMessage()
	if len(text) > settings.message_max_length:
		raise InvalidArgument("content_too_long")
	await ensure_member(chat_id, sender_uid)
	profile = await identity_service.find_profile(sender_uid)
	clock_node = store.chat_clock(chat_id)
	message_id = str(ulid.new())

	async def _build(reader):
		last_ts, last_seq = _clock_values(await reader.hgetall(clock_node))
		now = await store.server_time_ms(reader)
		message = Message(
			id=message_id,
			chat_id=chat_id,
			sender_uid=sender_uid,
			sender_display_name=profile.display_name if profile else sender_uid,
			avatar_ref=profile.avatar_ref if profile else "",
			content=text,
			server_timestamp=max(now, last_ts),
			seq=last_seq + 1,
			attachments=metas,
			sender_name_color=profile.name_color if profile else None,
		)
		batch = store.WriteBatch()
		_stage(batch, message)
		return batch, message

	message = await store.transact("append_message", _build, clock_node)
	obs_metrics.inc_message_appended(registry.classify_chat_id(chat_id).value)
	logger.debug("message appended", extra={"chat_id": chat_id, "seq": message.seq})
	return message


async def _read_messages(chat_id: str, ids: List[str]) -> List[Message]:
	raws = await store.read_fields(store.chat_messages(chat_id), ids)
	return [
		Message.from_record(chat_id, message_id, store.loads(raw))
		for message_id, raw in zip(ids, raws)
		if raw is not None
	]


async def list_messages(chat_id: str, limit: Optional[int] = None) -> List[Message]:
	"""Latest ``limit`` messages, oldest first."""
	limit = limit or settings.message_page_size
	if limit <= 0:
		raise InvalidArgument("invalid_limit")
	ids = await store.read_ordered(store.chat_timeline(chat_id), -limit, -1)
	return await _read_messages(chat_id, ids)


class _Timeline:
	"""Cached chat log that only reads entries past the newest one it holds."""

	def __init__(self, chat_id: str) -> None:
		self._chat_id = chat_id
		self._messages: List[Message] = []

	async def __call__(self) -> List[Message]:
		last_seq = self._messages[-1].seq if self._messages else 0
		ids = await store.read_ordered_after(store.chat_timeline(self._chat_id), last_seq)
		self._messages.extend(await _read_messages(self._chat_id, ids))
		return list(self._messages)


def messages_query(chat_id: str, owner: Optional[str] = None) -> LiveQuery:
	return LiveQuery(
		key=f"messages:{chat_id}",
		nodes=(store.chat_timeline(chat_id),),
		load=_Timeline(chat_id),
		owner=owner,
	)


class _AppendAdapter:
	"""Turns full snapshots into per-message callbacks, once per message id."""

	def __init__(self, on_append: MessageCallback) -> None:
		self._on_append = on_append
		self._seen: set[str] = set()
		self._last_seq = 0
		self._handle: Optional[Subscription] = None

	def bind(self, handle: Subscription) -> None:
		self._handle = handle

	async def __call__(self, snapshot: List[Message]) -> None:
		# snapshots are ordered by seq, so only the tail past the last delivery is new
		start = bisect_right(snapshot, self._last_seq, key=lambda message: message.seq)
		for message in snapshot[start:]:
			# the consumer may cancel from inside its own callback
			if self._handle is not None and not self._handle.active:
				return
			if message.id in self._seen:
				continue
			self._seen.add(message.id)
			self._last_seq = message.seq
			result = self._on_append(message)
			if inspect.isawaitable(result):
				await result


async def subscribe(
	manager: SubscriptionManager,
	chat_id: str,
	on_append: MessageCallback,
	*,
	owner: Optional[str] = None,
) -> Subscription:
	"""Deliver every existing message in order, then each new one as it lands."""
	return await manager.subscribe(messages_query(chat_id, owner), _AppendAdapter(on_append))
