"""Relationship graph: friend requests, friendships and blocks.

Each mutation reads the nodes it depends on under ``WATCH`` and commits every
affected location (both edge mirrors, the request, both counters) as one batch.
"""

from __future__ import annotations

import logging
from typing import List

from linkup.domain.social import audit, edges, policy
from linkup.domain.social.exceptions import RequestNotFound, UserNotFound
from linkup.domain.social.models import FriendRequest, RequestStatus
from linkup.infra import store

logger = logging.getLogger(__name__)

FRIENDS_COUNT = "friendsCount"


async def send_friend_request(from_uid: str, to_uid: str) -> FriendRequest:
	"""Upsert a pending request from ``from_uid`` to ``to_uid``.

	Re-sending an already pending request returns the stored one unchanged.
	"""
	policy.guard_not_self(from_uid, to_uid)
	watch = (
		store.users(from_uid),
		store.users(to_uid),
		store.friends(from_uid),
		store.blocked_users(from_uid),
		store.blocked_users(to_uid),
		store.friend_requests(to_uid),
		store.friend_requests(from_uid),
	)

	async def _build(reader):
		await policy.ensure_users_exist(reader, from_uid, to_uid)
		await policy.ensure_not_already_friends(reader, from_uid, to_uid)
		await policy.ensure_not_blocked(reader, from_uid, to_uid)
		await policy.ensure_no_incoming(reader, from_uid, to_uid)
		existing = await policy.get_pending(reader, from_uid, to_uid)
		if existing is not None:
			return None, (FriendRequest.from_record(to_uid, existing), False)
		sender_username = await reader.hget(store.users(from_uid), "username")
		request = FriendRequest(
			from_uid=from_uid,
			to_uid=to_uid,
			sender_username=sender_username or "",
			timestamp=await store.server_time_ms(reader),
		)
		batch = store.WriteBatch()
		batch.set_field(store.friend_requests(to_uid), from_uid, store.dumps(request.to_record()))
		return batch, (request, True)

	try:
		request, created = await store.transact("send_friend_request", _build, *watch)
	except Exception as exc:
		audit.inc_request_sent(getattr(exc, "reason", "error"))
		raise
	audit.inc_request_sent("sent" if created else "duplicate")
	if created:
		await audit.log_friend_event("request_sent", {"from": from_uid, "to": to_uid})
	return request


async def respond_to_request(to_uid: str, from_uid: str, accept: bool) -> FriendRequest:
	"""Accept or decline the pending request ``from_uid -> to_uid``."""
	watch = (
		store.friend_requests(to_uid),
		store.friend_requests(from_uid),
		store.friends(to_uid),
		store.friends(from_uid),
	)

	async def _build(reader):
		record = await policy.get_pending(reader, from_uid, to_uid)
		if record is None:
			raise RequestNotFound()
		request = FriendRequest.from_record(to_uid, record)
		batch = store.WriteBatch()
		batch.delete_field(store.friend_requests(to_uid), from_uid)
		if not accept:
			return batch, request.with_status(RequestStatus.DECLINED)
		if await reader.hexists(store.friend_requests(from_uid), to_uid):
			batch.delete_field(store.friend_requests(from_uid), to_uid)
		if not await edges.are_friends(to_uid, from_uid, reader):
			edges.add_friend_edge(batch, to_uid, from_uid)
			batch.increment(store.users(to_uid), FRIENDS_COUNT, 1)
			batch.increment(store.users(from_uid), FRIENDS_COUNT, 1)
		return batch, request.with_status(RequestStatus.ACCEPTED)

	resolved = await store.transact("respond_to_request", _build, *watch)
	audit.inc_request_resolved(resolved.status.value)
	await audit.log_friend_event(
		f"request_{resolved.status.value}",
		{"from": from_uid, "to": to_uid},
	)
	return resolved


async def cancel_request(from_uid: str, to_uid: str) -> FriendRequest:
	"""Withdraw a request the caller sent."""
	node = store.friend_requests(to_uid)

	async def _build(reader):
		record = await policy.get_pending(reader, from_uid, to_uid)
		if record is None:
			raise RequestNotFound()
		batch = store.WriteBatch()
		batch.delete_field(node, from_uid)
		return batch, FriendRequest.from_record(to_uid, record).with_status(RequestStatus.CANCELLED)

	cancelled = await store.transact("cancel_request", _build, node)
	audit.inc_request_resolved(cancelled.status.value)
	await audit.log_friend_event("request_cancelled", {"from": from_uid, "to": to_uid})
	return cancelled


async def block_user(blocker_uid: str, blocked_uid: str) -> bool:
	"""Block ``blocked_uid``; returns True when a friendship was removed."""
	policy.guard_not_self(blocker_uid, blocked_uid, "self_block")
	watch = (
		store.users(blocked_uid),
		store.friends(blocker_uid),
		store.friends(blocked_uid),
		store.friend_requests(blocker_uid),
		store.friend_requests(blocked_uid),
		store.blocked_users(blocker_uid),
	)

	async def _build(reader):
		if not await reader.exists(store.users(blocked_uid)):
			raise UserNotFound()
		batch = store.WriteBatch()
		edges.add_block_edge(batch, blocker_uid, blocked_uid)
		was_friend = await edges.FRIENDS.partial(blocker_uid, blocked_uid, reader)
		if was_friend:
			edges.remove_friend_edge(batch, blocker_uid, blocked_uid)
			batch.increment(store.users(blocker_uid), FRIENDS_COUNT, -1)
			batch.increment(store.users(blocked_uid), FRIENDS_COUNT, -1)
		if await reader.hexists(store.friend_requests(blocked_uid), blocker_uid):
			batch.delete_field(store.friend_requests(blocked_uid), blocker_uid)
		if await reader.hexists(store.friend_requests(blocker_uid), blocked_uid):
			batch.delete_field(store.friend_requests(blocker_uid), blocked_uid)
		return batch, was_friend

	unfriended = await store.transact("block_user", _build, *watch)
	audit.inc_block("block")
	await audit.log_friend_event(
		"blocked",
		{"blocker": blocker_uid, "blocked": blocked_uid, "unfriended": str(unfriended).lower()},
	)
	return unfriended


async def unblock_user(blocker_uid: str, blocked_uid: str) -> bool:
	"""Remove both block mirrors. Unblocking twice is a no-op; returns False then."""
	watch = (store.blocked_users(blocker_uid), store.users_blocked_by(blocked_uid))

	async def _build(reader):
		if not await edges.BLOCKS.partial(blocker_uid, blocked_uid, reader):
			return None, False
		batch = store.WriteBatch()
		edges.remove_block_edge(batch, blocker_uid, blocked_uid)
		return batch, True

	removed = await store.transact("unblock_user", _build, *watch)
	if removed:
		audit.inc_block("unblock")
		await audit.log_friend_event("unblocked", {"blocker": blocker_uid, "blocked": blocked_uid})
	return removed


async def are_friends(user_a: str, user_b: str) -> bool:
	return await edges.are_friends(user_a, user_b)


async def is_blocked(user_a: str, user_b: str) -> bool:
	return await edges.is_blocked(user_a, user_b)


async def list_friends(uid: str) -> List[str]:
	return await edges.FRIENDS.targets(uid)


async def list_blocked(uid: str) -> List[str]:
	return await edges.BLOCKS.targets(uid)


async def list_incoming_requests(uid: str) -> List[FriendRequest]:
	"""Pending requests addressed to ``uid``, newest first."""
	raw = await store.read_hash(store.friend_requests(uid))
	requests = [FriendRequest.from_record(uid, store.loads(value)) for value in raw.values()]
	requests.sort(key=lambda item: (-item.timestamp, item.from_uid))
	return requests
