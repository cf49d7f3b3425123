"""Guard checks for friend requests and blocks.

Every check takes the transaction reader so it sees the same snapshot the
subsequent write is conditioned on.
"""

from __future__ import annotations

from typing import Any, Optional

from linkup.domain.social import edges
from linkup.domain.social.exceptions import (
	AlreadyFriends,
	IncomingRequestPending,
	InvalidTarget,
	PairBlocked,
	UserNotFound,
)
from linkup.infra import store


def guard_not_self(user_id: str, target_id: str, reason: str = "self_request") -> None:
	if not user_id or not target_id or str(user_id) == str(target_id):
		raise InvalidTarget(reason)


async def ensure_users_exist(reader: Any, *user_ids: str) -> None:
	for uid in dict.fromkeys(user_ids):
		if not await reader.exists(store.users(uid)):
			raise UserNotFound()


async def ensure_not_already_friends(reader: Any, user_a: str, user_b: str) -> None:
	if await edges.are_friends(user_a, user_b, reader):
		raise AlreadyFriends()


async def ensure_not_blocked(reader: Any, user_a: str, user_b: str) -> None:
	if await edges.is_blocked(user_a, user_b, reader):
		raise PairBlocked()


async def get_pending(reader: Any, from_uid: str, to_uid: str) -> Optional[dict]:
	return store.loads(await reader.hget(store.friend_requests(to_uid), from_uid))


async def ensure_no_incoming(reader: Any, from_uid: str, to_uid: str) -> None:
	if await reader.hexists(store.friend_requests(from_uid), to_uid):
		raise IncomingRequestPending()
