"""Tracks the authenticated principal for one client session."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from linkup.errors import Unauthenticated

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[str], Optional[str]], Union[None, Awaitable[None]]]


class SessionIdentity:
	"""Current uid plus a change stream of ``(previous, current)`` pairs."""

	def __init__(self, uid: Optional[str] = None) -> None:
		self._uid = uid or None
		self._listeners: List[IdentityListener] = []

	def current_uid(self) -> Optional[str]:
		return self._uid

	def on_change(self, listener: IdentityListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _remove

	async def sign_in(self, uid: str) -> None:
		if not uid:
			raise Unauthenticated("missing_uid")
		await self._set(uid)

	async def sign_out(self) -> None:
		await self._set(None)

	async def _set(self, uid: Optional[str]) -> None:
		previous = self._uid
		if previous == uid:
			return
		self._uid = uid
		logger.info("session identity changed", extra={"previous_uid": previous, "uid": uid})
		for listener in list(self._listeners):
			result = listener(previous, uid)
			if inspect.isawaitable(result):
				await result


def require_uid(session: SessionIdentity) -> str:
	uid = session.current_uid()
	if not uid:
		raise Unauthenticated()
	return uid
