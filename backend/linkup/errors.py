"""Error taxonomy shared by every Linkup component."""

from __future__ import annotations


class LinkupError(Exception):
	"""Base class for rejected operations."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class Unauthenticated(LinkupError):
	reason = "unauthenticated"


class NotFound(LinkupError):
	reason = "not_found"


class InvalidArgument(LinkupError):
	reason = "invalid_argument"


class Conflict(LinkupError):
	reason = "conflict"


class Blocked(LinkupError):
	reason = "blocked"


class StoreUnavailable(LinkupError):
	"""Transient failure talking to the shared store."""

	reason = "store_unavailable"
