import pytest

from linkup.domain.identity import SessionIdentity
from linkup.domain.notifications import NotificationFeed, NotificationKind, project
from linkup.domain.notifications.aggregator import unread_count
from linkup.domain.social import service
from linkup.domain.social.models import FriendRequest
from linkup.errors import Unauthenticated


def _request(from_uid, timestamp, username=None):
	return FriendRequest(from_uid=from_uid, to_uid="u2", sender_username=username or from_uid, timestamp=timestamp)


def test_projection_sorts_newest_first_with_id_tiebreak():
	requests = [_request("b", 100), _request("a", 100), _request("c", 300)]

	notifications = project(requests, set())

	assert [n.id for n in notifications] == ["c", "a", "b"]
	assert all(n.kind is NotificationKind.FRIEND_REQUEST for n in notifications)


def test_projection_overlays_read_state():
	notifications = project([_request("a", 1, "alice"), _request("b", 2)], {"a"})

	by_id = {n.id: n for n in notifications}
	assert by_id["a"].read is True
	assert by_id["b"].read is False
	assert "alice" in by_id["a"].description
	assert by_id["a"].link == "/profile/alice"
	assert unread_count(notifications) == 1


@pytest.mark.asyncio
async def test_feed_requires_identity(manager):
	feed = NotificationFeed(manager, SessionIdentity())
	with pytest.raises(Unauthenticated):
		await feed.start()


@pytest.mark.asyncio
async def test_alice_request_then_bob_accepts(profiles, manager, eventually):
	session = SessionIdentity()
	await session.sign_in("u2")
	feed = NotificationFeed(manager, session)
	await feed.start()
	assert feed.notifications == []

	await service.send_friend_request("u1", "u2")
	await eventually(lambda: len(feed.notifications) == 1)

	entry = feed.notifications[0]
	assert entry.kind is NotificationKind.FRIEND_REQUEST
	assert entry.read is False
	assert "alice" in entry.description
	assert feed.unread_count == 1

	await service.respond_to_request("u2", "u1", accept=True)
	await eventually(lambda: feed.notifications == [])
	assert feed.unread_count == 0
	await feed.stop()


@pytest.mark.asyncio
async def test_mark_read_keeps_entry_until_request_disappears(profiles, manager, eventually):
	session = SessionIdentity()
	await session.sign_in("u1")
	feed = NotificationFeed(manager, session)
	changes = []
	feed.on_change(changes.append)
	await feed.start()

	await service.send_friend_request("u2", "u1")
	await service.send_friend_request("u3", "u1")
	await eventually(lambda: len(feed.notifications) == 2)

	await feed.mark_read("u2")
	assert feed.unread_count == 1
	assert len(feed.notifications) == 2

	await service.respond_to_request("u1", "u2", accept=False)
	await eventually(lambda: [n.id for n in feed.notifications] == ["u3"])

	await feed.mark_all_read()
	assert feed.unread_count == 0
	assert changes[-1][0].read is True

	# a request sent again after being resolved shows up unread
	await service.send_friend_request("u2", "u1")
	await eventually(lambda: len(feed.notifications) == 2)
	assert {n.id for n in feed.notifications if not n.read} == {"u2"}
	await feed.stop()


@pytest.mark.asyncio
async def test_feed_follows_session_identity(profiles, manager, eventually):
	session = SessionIdentity()
	await session.sign_in("u2")
	feed = NotificationFeed(manager, session)
	changes = []
	feed.on_change(changes.append)
	await feed.start()
	await service.send_friend_request("u1", "u2")
	await eventually(lambda: len(feed.notifications) == 1)
	await feed.mark_read("u1")

	await session.sign_in("u3")
	assert feed.notifications == []
	assert changes[-1] == []

	await service.send_friend_request("u2", "u3")
	await eventually(lambda: [n.id for n in feed.notifications] == ["u2"])
	assert feed.unread_count == 1

	await session.sign_out()
	assert feed.notifications == []
	assert manager.listener_count() == 0
	await feed.stop()
