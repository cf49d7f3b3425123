"""Domain-level exceptions for chats and message streams."""

from __future__ import annotations

from linkup.errors import InvalidArgument, NotFound


class EmptyMessage(InvalidArgument):
	reason = "empty_message"


class ChatNotFound(NotFound):
	reason = "chat_missing"


class NotAMember(InvalidArgument):
	reason = "not_member"
