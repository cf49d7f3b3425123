"""Domain-level exceptions for friend requests, friendships and blocks."""

from __future__ import annotations

from linkup.errors import Blocked, Conflict, InvalidArgument, NotFound


class InvalidTarget(InvalidArgument):
	reason = "invalid_target"


class AlreadyFriends(Conflict):
	reason = "already_friends"


class IncomingRequestPending(Conflict):
	"""The target already asked to be friends; accept that request instead."""

	reason = "incoming_pending"


class RequestNotFound(NotFound):
	reason = "request_not_found"


class UserNotFound(NotFound):
	reason = "user_missing"


class PairBlocked(Blocked):
	reason = "blocked"
