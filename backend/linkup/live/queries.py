"""Live query factories for the standing reads clients can subscribe to."""

from __future__ import annotations

from typing import Optional

from linkup.domain.chat import registry, stream
from linkup.domain.chat.models import Chat
from linkup.domain.identity import service as identity_service
from linkup.domain.social import service as social_service
from linkup.errors import NotFound
from linkup.infra import store
from linkup.live.manager import LiveQuery

messages_query = stream.messages_query


def friend_requests_query(uid: str, owner: Optional[str] = None) -> LiveQuery:
	"""Pending requests addressed to ``uid``, newest first."""
	return LiveQuery(
		key=f"friend_requests:{uid}",
		nodes=(store.friend_requests(uid),),
		load=lambda: social_service.list_incoming_requests(uid),
		owner=owner or uid,
	)


def friends_query(uid: str, owner: Optional[str] = None) -> LiveQuery:
	return LiveQuery(
		key=f"friends:{uid}",
		nodes=(store.friends(uid),),
		load=lambda: social_service.list_friends(uid),
		owner=owner or uid,
	)


def blocked_query(uid: str, owner: Optional[str] = None) -> LiveQuery:
	return LiveQuery(
		key=f"blocked:{uid}",
		nodes=(store.blocked_users(uid),),
		load=lambda: social_service.list_blocked(uid),
		owner=owner or uid,
	)


def chat_query(chat_id: str, viewer_uid: Optional[str] = None, owner: Optional[str] = None) -> LiveQuery:
	"""A chat and its members; ``None`` once the chat no longer exists."""

	async def _load() -> Optional[Chat]:
		try:
			return await registry.get_chat(chat_id, viewer_uid=viewer_uid)
		except NotFound:
			return None

	return LiveQuery(
		key=f"chat:{chat_id}:{viewer_uid or ''}",
		nodes=(store.chat(chat_id), store.chat_members(chat_id)),
		load=_load,
		owner=owner,
	)


def profile_query(uid: str, owner: Optional[str] = None) -> LiveQuery:
	return LiveQuery(
		key=f"profile:{uid}",
		nodes=(store.users(uid),),
		load=lambda: identity_service.find_profile(uid),
		owner=owner,
	)
