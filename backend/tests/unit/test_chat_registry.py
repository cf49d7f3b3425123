import pytest

from linkup.domain.chat import registry, stream
from linkup.domain.chat.exceptions import ChatNotFound
from linkup.domain.chat.models import SYSTEM_SENDER, ChatKind
from linkup.errors import InvalidArgument, Unauthenticated


@pytest.mark.parametrize("a,b", [("u1", "u2"), ("zed", "amy"), ("x_1", "x")])
def test_direct_chat_id_is_symmetric(a, b):
	assert registry.resolve_direct_chat_id(a, b) == registry.resolve_direct_chat_id(b, a)
	assert registry.resolve_direct_chat_id(a, b).startswith("dm_")


def test_direct_chat_id_rejects_self_and_missing():
	with pytest.raises(InvalidArgument):
		registry.resolve_direct_chat_id("u1", "u1")
	with pytest.raises(InvalidArgument):
		registry.resolve_direct_chat_id("u1", "")


def test_direct_chat_peer_handles_underscored_uids():
	chat_id = registry.resolve_direct_chat_id("a_b", "c")
	assert registry.direct_chat_peer(chat_id, "a_b") == "c"
	assert registry.direct_chat_peer(chat_id, "c") == "a_b"
	assert registry.direct_chat_peer(chat_id, "z") is None


@pytest.mark.asyncio
async def test_direct_chat_members_with_underscored_uids():
	unique = await registry.get_chat(registry.resolve_direct_chat_id("x_1", "y"))
	assert unique.members == frozenset({"x_1", "y"})

	ambiguous = "dm_a_b_c"
	assert len(registry.direct_chat_pairs(ambiguous)) == 2
	assert (await registry.get_chat(ambiguous, viewer_uid="a")).members == frozenset({"a", "b_c"})
	assert (await registry.get_chat(ambiguous, viewer_uid="c")).members == frozenset({"a_b", "c"})
	with pytest.raises(ChatNotFound):
		await registry.get_chat("dm_nounderscore")


@pytest.mark.parametrize(
	"chat_id,kind",
	[
		("global", ChatKind.GLOBAL),
		("global-support", ChatKind.GLOBAL),
		("dm_u1_u2", ChatKind.DM),
		("gc-weekend-1700000000000", ChatKind.PARTY),
		("party-abc", ChatKind.PARTY),
		("team-01HZX", ChatKind.TEAM),
	],
)
def test_classify_chat_id(chat_id, kind):
	assert registry.classify_chat_id(chat_id) is kind


def test_classify_rejects_unknown_ids():
	with pytest.raises(InvalidArgument):
		registry.classify_chat_id("lobby")


@pytest.mark.asyncio
async def test_create_group_chat_members_and_system_message(profiles):
	chat = await registry.create_group_chat("u1", "Weekend", ["u2", "u3"])

	assert chat.kind is ChatKind.PARTY
	assert chat.members == frozenset({"u1", "u2", "u3"})
	assert chat.chat_id.startswith("gc-weekend-")
	loaded = await registry.get_chat(chat.chat_id)
	assert loaded.members == chat.members
	assert loaded.display_name == "Weekend"

	messages = await stream.list_messages(chat.chat_id)
	assert len(messages) == 1
	assert messages[0].sender_uid == SYSTEM_SENDER
	assert messages[0].content == 'Alice created the Group Chat: "Weekend"'
	assert messages[0].seq == 1


@pytest.mark.asyncio
async def test_group_chat_requires_name_and_creator(profiles):
	with pytest.raises(InvalidArgument):
		await registry.create_group_chat("u1", "   ", ["u2"])
	with pytest.raises(Unauthenticated):
		await registry.create_group_chat(None, "Weekend", ["u2"])


@pytest.mark.asyncio
async def test_team_chat_uses_generated_id(profiles):
	first = await registry.create_team_chat("u1", "Squad", ["u2"])
	second = await registry.create_team_chat("u1", "Squad", ["u2"])

	assert first.kind is ChatKind.TEAM
	assert first.chat_id.startswith("team-")
	assert first.chat_id != second.chat_id
	with pytest.raises(InvalidArgument) as exc_info:
		await registry.create_team_chat("u1", "Solo", ["u1"])
	assert exc_info.value.reason == "members_required"


@pytest.mark.asyncio
async def test_direct_chat_is_lazy(fake_redis):
	chat_id = await registry.get_or_create_direct_chat("u2", "u1")

	assert chat_id == "dm_u1_u2"
	assert await fake_redis.keys("chats/*") == []
	chat = await registry.get_chat(chat_id)
	assert await registry.is_member(chat, "u1")
	assert not await registry.is_member(chat, "u3")


@pytest.mark.asyncio
async def test_membership_rules(profiles):
	group = await registry.create_group_chat("u1", "Weekend", ["u2"])
	assert await registry.is_member(group, "u2")
	assert not await registry.is_member(group, "u3")
	assert await registry.is_member(await registry.get_chat("global"), "u3")
	with pytest.raises(ChatNotFound):
		await registry.get_chat("gc-missing-1")
