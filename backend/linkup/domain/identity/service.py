"""Profile registration and lookup."""

from __future__ import annotations

import logging
from typing import Optional

from linkup.domain.identity.models import EDITABLE_FIELDS, USERNAME_RE, UserProfile
from linkup.errors import Conflict, InvalidArgument, NotFound, Unauthenticated
from linkup.infra import store

logger = logging.getLogger(__name__)


def _guard_username(username: str) -> str:
	candidate = (username or "").strip()
	if not USERNAME_RE.match(candidate):
		raise InvalidArgument("invalid_username")
	return candidate


async def create_profile(
	uid: str,
	username: str,
	*,
	display_name: Optional[str] = None,
	avatar_ref: str = "",
	bio: str = "",
	title: Optional[str] = None,
	name_color: Optional[str] = None,
) -> UserProfile:
	"""Write ``users/{uid}`` and claim ``usernames/{lower}`` in one transaction."""
	if not uid:
		raise Unauthenticated()
	username = _guard_username(username)
	profile = UserProfile(
		uid=uid,
		username=username,
		display_name=(display_name or "").strip() or username,
		avatar_ref=avatar_ref,
		bio=bio,
		title=title,
		name_color=name_color,
	)
	index_node = store.usernames(username)
	profile_node = store.users(uid)

	async def _build(reader):
		owner = await reader.get(index_node)
		if owner is not None and owner != uid:
			raise Conflict("username_taken")
		if await reader.exists(profile_node):
			raise Conflict("profile_exists")
		batch = store.WriteBatch()
		batch.set_fields(profile_node, profile.to_record())
		batch.set_value(index_node, uid)
		return batch, profile

	created = await store.transact("create_profile", _build, index_node, profile_node)
	logger.info("profile created", extra={"uid": uid, "username": username})
	return created


async def get_profile(uid: str) -> UserProfile:
	record = await store.read_hash(store.users(uid))
	if not record:
		raise NotFound("profile_missing")
	return UserProfile.from_record(record)


async def find_profile(uid: str) -> Optional[UserProfile]:
	record = await store.read_hash(store.users(uid))
	return UserProfile.from_record(record) if record else None


async def resolve_username(username: str) -> str:
	"""Return the uid owning ``username`` (case-insensitive)."""
	uid = await store.read_value(store.usernames((username or "").strip()))
	if not uid:
		raise NotFound("username_missing")
	return uid


async def update_profile(uid: str, **fields: Optional[str]) -> UserProfile:
	unknown = set(fields) - set(EDITABLE_FIELDS)
	if unknown:
		raise InvalidArgument("field_not_editable")
	await get_profile(uid)
	updates = {key: value for key, value in fields.items() if value is not None}
	if "displayName" in updates and not updates["displayName"].strip():
		raise InvalidArgument("empty_display_name")
	batch = store.WriteBatch()
	batch.set_fields(store.users(uid), updates)
	await store.commit(batch)
	return await get_profile(uid)
