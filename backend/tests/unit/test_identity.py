import pytest

from linkup.domain.identity import SessionIdentity, require_uid
from linkup.domain.identity import service
from linkup.errors import Conflict, InvalidArgument, NotFound, Unauthenticated


@pytest.mark.asyncio
async def test_create_profile_claims_username(fake_redis):
	profile = await service.create_profile("u1", "Alice", display_name="Alice A.")

	assert profile.username == "Alice"
	assert await fake_redis.get("usernames/alice") == "u1"
	stored = await service.get_profile("u1")
	assert stored.display_name == "Alice A."
	assert stored.friends_count == 0


@pytest.mark.asyncio
async def test_username_is_unique_case_insensitively():
	await service.create_profile("u1", "alice")
	with pytest.raises(Conflict) as exc_info:
		await service.create_profile("u2", "ALICE")
	assert exc_info.value.reason == "username_taken"


@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["ab", "way_too_long_username_here", "bad name", ""])
async def test_invalid_usernames_rejected(username):
	with pytest.raises(InvalidArgument):
		await service.create_profile("u1", username)


@pytest.mark.asyncio
async def test_resolve_username_and_missing_profile():
	await service.create_profile("u1", "alice")
	assert await service.resolve_username("Alice") == "u1"
	with pytest.raises(NotFound):
		await service.resolve_username("nobody")
	with pytest.raises(NotFound):
		await service.get_profile("u9")


@pytest.mark.asyncio
async def test_update_profile_only_touches_editable_fields():
	await service.create_profile("u1", "alice")
	updated = await service.update_profile("u1", bio="hi there", nameColor="#ff0000")
	assert updated.bio == "hi there"
	assert updated.name_color == "#ff0000"
	with pytest.raises(InvalidArgument):
		await service.update_profile("u1", friendsCount="99")
	with pytest.raises(InvalidArgument):
		await service.update_profile("u1", displayName="   ")


@pytest.mark.asyncio
async def test_session_identity_notifies_listeners():
	session = SessionIdentity()
	seen = []
	remove = session.on_change(lambda previous, current: seen.append((previous, current)))

	with pytest.raises(Unauthenticated):
		require_uid(session)
	await session.sign_in("u1")
	assert require_uid(session) == "u1"
	await session.sign_out()
	remove()
	await session.sign_in("u2")

	assert seen == [(None, "u1"), ("u1", None)]
	with pytest.raises(Unauthenticated):
		await session.sign_in("")
