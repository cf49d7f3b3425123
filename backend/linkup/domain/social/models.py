"""Domain models for friend requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class RequestStatus(str, Enum):
	"""Only pending requests are stored; the others describe how one ended."""

	PENDING = "pending"
	ACCEPTED = "accepted"
	DECLINED = "declined"
	CANCELLED = "cancelled"


@dataclass(slots=True)
class FriendRequest:
	"""A directed request, stored at ``friend_requests/{to_uid}/{from_uid}``."""

	from_uid: str
	to_uid: str
	sender_username: str
	timestamp: int
	status: RequestStatus = RequestStatus.PENDING

	@classmethod
	def from_record(cls, to_uid: str, record: Mapping[str, Any]) -> "FriendRequest":
		return cls(
			from_uid=str(record["senderUid"]),
			to_uid=to_uid,
			sender_username=str(record.get("senderUsername") or ""),
			timestamp=int(record.get("timestamp") or 0),
			status=RequestStatus(record.get("status") or RequestStatus.PENDING.value),
		)

	def to_record(self) -> dict[str, Any]:
		return {
			"senderUid": self.from_uid,
			"senderUsername": self.sender_username,
			"timestamp": self.timestamp,
			"status": self.status.value,
		}

	def with_status(self, status: RequestStatus) -> "FriendRequest":
		return FriendRequest(
			from_uid=self.from_uid,
			to_uid=self.to_uid,
			sender_username=self.sender_username,
			timestamp=self.timestamp,
			status=status,
		)

	def to_dict(self) -> dict[str, Any]:
		return {
			"from_uid": self.from_uid,
			"to_uid": self.to_uid,
			"sender_username": self.sender_username,
			"timestamp": self.timestamp,
			"status": self.status.value,
		}
