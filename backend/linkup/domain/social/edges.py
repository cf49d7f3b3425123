"""Mirrored relationship edges.

A friendship or a block is one logical edge stored at two locations. Callers
only see symmetric operations; both locations are always written or removed in
the same :class:`~linkup.infra.store.WriteBatch`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from linkup.infra import store

MARKER = "1"


@dataclass(frozen=True)
class MirroredEdge:
	forward: Callable[[str], str]
	inverse: Callable[[str], str]

	def add(self, batch: store.WriteBatch, a: str, b: str) -> None:
		batch.set_field(self.forward(a), b, MARKER)
		batch.set_field(self.inverse(b), a, MARKER)

	def remove(self, batch: store.WriteBatch, a: str, b: str) -> None:
		batch.delete_field(self.forward(a), b)
		batch.delete_field(self.inverse(b), a)

	async def exists(self, a: str, b: str, reader: Optional[Any] = None) -> bool:
		if reader is None:
			return await store.field_exists(self.forward(a), b)
		return bool(await reader.hexists(self.forward(a), b))

	async def partial(self, a: str, b: str, reader: Any) -> bool:
		"""True when either location holds the edge."""
		if await reader.hexists(self.forward(a), b):
			return True
		return bool(await reader.hexists(self.inverse(b), a))

	async def targets(self, a: str) -> List[str]:
		return sorted((await store.read_hash(self.forward(a))).keys())


# friends/{a}/{b} mirrored by friends/{b}/{a}
FRIENDS = MirroredEdge(forward=store.friends, inverse=store.friends)
# blocked_users/{blocker}/{blocked} mirrored by users_blocked_by/{blocked}/{blocker}
BLOCKS = MirroredEdge(forward=store.blocked_users, inverse=store.users_blocked_by)


async def are_friends(a: str, b: str, reader: Optional[Any] = None) -> bool:
	return await FRIENDS.exists(a, b, reader)


def add_friend_edge(batch: store.WriteBatch, a: str, b: str) -> None:
	FRIENDS.add(batch, a, b)


def remove_friend_edge(batch: store.WriteBatch, a: str, b: str) -> None:
	FRIENDS.remove(batch, a, b)


async def is_blocked(a: str, b: str, reader: Optional[Any] = None) -> bool:
	"""True if either user has blocked the other."""
	if await BLOCKS.exists(a, b, reader):
		return True
	return await BLOCKS.exists(b, a, reader)


def add_block_edge(batch: store.WriteBatch, blocker: str, blocked: str) -> None:
	BLOCKS.add(batch, blocker, blocked)


def remove_block_edge(batch: store.WriteBatch, blocker: str, blocked: str) -> None:
	BLOCKS.remove(batch, blocker, blocked)
