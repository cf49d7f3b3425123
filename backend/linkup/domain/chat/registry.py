"""Chat registry: chat entities, membership and chat id derivation."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

import ulid

from linkup.domain.chat import stream
from linkup.domain.chat.exceptions import ChatNotFound
from linkup.domain.chat.models import Chat, ChatKind
from linkup.domain.identity import service as identity_service
from linkup.errors import InvalidArgument, Unauthenticated
from linkup.infra import store
from linkup.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

GLOBAL_ROOMS = {
	"global": "Global Chat",
	"global-unblocked": "Unblocked Chat",
	"global-school": "School Chat",
	"global-anonymous": "Anonymous Chat",
	"global-support": "Support Chat",
}

DM_PREFIX = "dm_"
GROUP_PREFIX = "gc-"
TEAM_PREFIX = "team-"
PARTY_PREFIX = "party-"

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SLUG_MAX = 30


def resolve_direct_chat_id(uid_a: str, uid_b: str) -> str:
	"""Deterministic DM id: both uids sorted, so argument order does not matter."""
	if not uid_a or not uid_b:
		raise InvalidArgument("missing_uid")
	if uid_a == uid_b:
		raise InvalidArgument("self_chat")
	first, second = sorted((uid_a, uid_b))
	return f"{DM_PREFIX}{first}_{second}"


def direct_chat_pairs(chat_id: str) -> list[tuple[str, str]]:
	"""Every uid pair that resolves to ``chat_id``.

	Uids may contain underscores, so an id like ``dm_a_b_c`` can stand for
	``(a, b_c)`` as well as ``(a_b, c)``.
	"""
	if not chat_id.startswith(DM_PREFIX):
		return []
	rest = chat_id[len(DM_PREFIX):]
	pairs = []
	for index, char in enumerate(rest):
		if char != "_":
			continue
		first, second = rest[:index], rest[index + 1:]
		if first and second and first != second and resolve_direct_chat_id(first, second) == chat_id:
			pairs.append((first, second))
	return pairs


def direct_chat_peer(chat_id: str, uid: str) -> Optional[str]:
	"""Return the other participant of a DM chat if ``uid`` is one of its two."""
	if not chat_id.startswith(DM_PREFIX) or not uid:
		return None
	rest = chat_id[len(DM_PREFIX):]
	candidates = []
	if rest.startswith(f"{uid}_"):
		candidates.append(rest[len(uid) + 1:])
	if rest.endswith(f"_{uid}"):
		candidates.append(rest[: -len(uid) - 1])
	for other in candidates:
		if other and other != uid and resolve_direct_chat_id(uid, other) == chat_id:
			return other
	return None


def classify_chat_id(chat_id: str) -> ChatKind:
	if chat_id in GLOBAL_ROOMS:
		return ChatKind.GLOBAL
	if chat_id.startswith(DM_PREFIX):
		return ChatKind.DM
	if chat_id.startswith(TEAM_PREFIX):
		return ChatKind.TEAM
	if chat_id.startswith((GROUP_PREFIX, PARTY_PREFIX)):
		return ChatKind.PARTY
	raise InvalidArgument("invalid_chat_id")


def _slugify(name: str) -> str:
	return _SLUG_RE.sub("-", name.lower())[:_SLUG_MAX]


def _stage_members(batch: store.WriteBatch, chat_id: str, member_uids: Iterable[str]) -> None:
	node = store.chat_members(chat_id)
	for uid in member_uids:
		batch.set_field(node, uid, "1")


def _member_set(creator_uid: str, member_uids: Sequence[str]) -> list[str]:
	return list(dict.fromkeys([creator_uid, *[uid for uid in member_uids if uid]]))


async def _creator_display_name(uid: str) -> str:
	profile = await identity_service.find_profile(uid)
	return profile.display_name if profile else "User"


async def _create_chat(
	*,
	chat_id: str,
	kind: ChatKind,
	name: str,
	creator_uid: str,
	member_uids: Sequence[str],
	announcement: str,
	created_at: int,
) -> Chat:
	members = _member_set(creator_uid, member_uids)
	chat = Chat(
		chat_id=chat_id,
		kind=kind,
		display_name=name,
		created_by=creator_uid,
		created_at=created_at,
		members=frozenset(members),
	)
	batch = store.WriteBatch()
	batch.set_fields(store.chat(chat_id), chat.to_record())
	_stage_members(batch, chat_id, members)
	stream.stage_system_message(batch, chat_id, announcement, created_at)
	await store.commit(batch)
	obs_metrics.inc_chat_created(kind.value)
	logger.info("chat created", extra={"chat_id": chat_id, "kind": kind.value, "members": len(members)})
	return chat


async def create_group_chat(creator_uid: Optional[str], name: str, member_uids: Sequence[str]) -> Chat:
	"""Create a group chat whose id is derived from its name plus a timestamp."""
	if not creator_uid:
		raise Unauthenticated()
	name = (name or "").strip()
	if not name:
		raise InvalidArgument("empty_name")
	created_at = await store.server_time_ms()
	chat_id = f"{GROUP_PREFIX}{_slugify(name)}-{created_at}"
	creator_name = await _creator_display_name(creator_uid)
	return await _create_chat(
		chat_id=chat_id,
		kind=ChatKind.PARTY,
		name=name,
		creator_uid=creator_uid,
		member_uids=member_uids,
		announcement=f'{creator_name} created the Group Chat: "{name}"',
		created_at=created_at,
	)


async def create_team_chat(creator_uid: Optional[str], name: str, member_uids: Sequence[str]) -> Chat:
	"""Create a team chat keyed by a generated unique id rather than its name."""
	if not creator_uid:
		raise Unauthenticated()
	name = (name or "").strip()
	if not name:
		raise InvalidArgument("empty_name")
	if not [uid for uid in member_uids if uid and uid != creator_uid]:
		raise InvalidArgument("members_required")
	created_at = await store.server_time_ms()
	chat_id = f"{TEAM_PREFIX}{ulid.new()}"
	creator_name = await _creator_display_name(creator_uid)
	return await _create_chat(
		chat_id=chat_id,
		kind=ChatKind.TEAM,
		name=name,
		creator_uid=creator_uid,
		member_uids=member_uids,
		announcement=f'{creator_name} created the Team: "{name}"',
		created_at=created_at,
	)


async def get_or_create_direct_chat(uid_a: str, uid_b: str) -> str:
	"""DM chats exist lazily: the first message establishes them for readers."""
	return resolve_direct_chat_id(uid_a, uid_b)


def _direct_chat_members(chat_id: str, viewer_uid: Optional[str]) -> frozenset[str]:
	if viewer_uid:
		peer = direct_chat_peer(chat_id, viewer_uid)
		if peer is not None:
			return frozenset({viewer_uid, peer})
	pairs = direct_chat_pairs(chat_id)
	if not pairs:
		raise ChatNotFound()
	if len(pairs) > 1:
		# ambiguous without a participant to anchor on
		return frozenset()
	return frozenset(pairs[0])


async def get_chat(chat_id: str, viewer_uid: Optional[str] = None) -> Chat:
	"""Load a chat. DM members are derived from the id, using ``viewer_uid`` when given."""
	kind = classify_chat_id(chat_id)
	if kind is ChatKind.GLOBAL:
		return Chat(chat_id=chat_id, kind=kind, display_name=GLOBAL_ROOMS[chat_id])
	if kind is ChatKind.DM:
		return Chat(chat_id=chat_id, kind=kind, members=_direct_chat_members(chat_id, viewer_uid))
	record = await store.read_hash(store.chat(chat_id))
	if not record:
		raise ChatNotFound()
	members = await store.read_hash(store.chat_members(chat_id))
	return Chat.from_record(chat_id, record, members.keys())


async def is_member(chat: Chat, uid: str) -> bool:
	if not uid:
		return False
	if chat.kind is ChatKind.GLOBAL:
		return True
	if chat.kind is ChatKind.DM:
		return direct_chat_peer(chat.chat_id, uid) is not None
	return uid in chat.members
