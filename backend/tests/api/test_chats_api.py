import pytest


def _as(uid):
	return {"X-User-Id": uid}


@pytest.mark.asyncio
async def test_group_chat_lifecycle(api_client, profiles):
	created = await api_client.post(
		"/chats/groups",
		json={"name": "Weekend", "member_uids": ["u2", "u3"]},
		headers=_as("u1"),
	)
	assert created.status_code == 201
	chat = created.json()
	assert chat["kind"] == "party"
	assert chat["members"] == ["u1", "u2", "u3"]

	sent = await api_client.post(
		f"/chats/{chat['chat_id']}/messages",
		json={"content": "see you saturday"},
		headers=_as("u2"),
	)
	assert sent.status_code == 201
	assert sent.json()["seq"] == 2

	listing = await api_client.get(f"/chats/{chat['chat_id']}/messages", headers=_as("u3"))
	items = listing.json()["items"]
	assert [item["sender_uid"] for item in items] == ["system", "u2"]
	assert "Weekend" in items[0]["content"]


@pytest.mark.asyncio
async def test_non_members_cannot_read_or_write(api_client, profiles):
	created = await api_client.post("/chats/groups", json={"name": "Private", "member_uids": ["u2"]}, headers=_as("u1"))
	chat_id = created.json()["chat_id"]

	read = await api_client.get(f"/chats/{chat_id}/messages", headers=_as("u3"))
	write = await api_client.post(f"/chats/{chat_id}/messages", json={"content": "hi"}, headers=_as("u3"))
	assert read.status_code == 400
	assert write.json()["detail"] == "not_member"
	missing = await api_client.get("/chats/gc-nope-1", headers=_as("u1"))
	assert missing.status_code == 404


@pytest.mark.asyncio
async def test_direct_chat_and_empty_message(api_client, profiles):
	opened = await api_client.post("/chats/direct/u1", headers=_as("u2"))
	assert opened.json() == {"chat_id": "dm_u1_u2"}

	empty = await api_client.post("/chats/dm_u1_u2/messages", json={"content": "  "}, headers=_as("u1"))
	assert empty.status_code == 400
	assert empty.json()["detail"] == "empty_message"

	sent = await api_client.post("/chats/dm_u1_u2/messages", json={"content": "yo"}, headers=_as("u1"))
	assert sent.status_code == 201


@pytest.mark.asyncio
async def test_team_requires_members(api_client, profiles):
	response = await api_client.post("/chats/teams", json={"name": "Solo"}, headers=_as("u1"))
	assert response.status_code == 400
	assert response.json()["detail"] == "members_required"
