"""Domain models for chats and messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

SYSTEM_SENDER = "system"


class ChatKind(str, Enum):
	GLOBAL = "global"
	PARTY = "party"
	DM = "dm"
	TEAM = "team"


@dataclass(slots=True, frozen=True)
class AttachmentMeta:
	attachment_id: str
	media_type: str
	size_bytes: int | None = None
	file_name: str | None = None
	remote_url: str | None = None


@dataclass(slots=True, frozen=True)
class Chat:
	chat_id: str
	kind: ChatKind
	display_name: Optional[str] = None
	created_by: Optional[str] = None
	created_at: Optional[int] = None
	members: FrozenSet[str] = field(default_factory=frozenset)

	def to_record(self) -> dict[str, str | int]:
		record: dict[str, str | int] = {"kind": self.kind.value}
		if self.display_name:
			record["displayName"] = self.display_name
		if self.created_by:
			record["createdBy"] = self.created_by
		if self.created_at is not None:
			record["createdAt"] = self.created_at
		return record

	@classmethod
	def from_record(cls, chat_id: str, record: Mapping[str, str], members: Iterable[str]) -> "Chat":
		created_at = record.get("createdAt")
		return cls(
			chat_id=chat_id,
			kind=ChatKind(record["kind"]),
			display_name=record.get("displayName") or None,
			created_by=record.get("createdBy") or None,
			created_at=int(created_at) if created_at else None,
			members=frozenset(members),
		)

	def to_dict(self) -> dict[str, Any]:
		return {
			"chat_id": self.chat_id,
			"kind": self.kind.value,
			"display_name": self.display_name,
			"created_by": self.created_by,
			"created_at": self.created_at,
			"members": sorted(self.members),
		}


@dataclass(slots=True, frozen=True)
class Message:
	id: str
	chat_id: str
	sender_uid: str
	sender_display_name: str
	avatar_ref: str
	content: str
	server_timestamp: int
	seq: int
	attachments: Tuple[AttachmentMeta, ...] = ()
	sender_name_color: Optional[str] = None

	@property
	def is_system(self) -> bool:
		return self.sender_uid == SYSTEM_SENDER

	def to_record(self) -> dict[str, Any]:
		record: dict[str, Any] = {
			"senderUid": self.sender_uid,
			"senderName": self.sender_display_name,
			"senderAvatar": self.avatar_ref,
			"content": self.content,
			"timestamp": self.server_timestamp,
			"seq": self.seq,
		}
		if self.attachments:
			record["attachments"] = [
				{key: value for key, value in _attachment_items(meta) if value is not None}
				for meta in self.attachments
			]
		if self.sender_name_color:
			record["senderNameColor"] = self.sender_name_color
		return record

	@classmethod
	def from_record(cls, chat_id: str, message_id: str, record: Mapping[str, Any]) -> "Message":
		return cls(
			id=message_id,
			chat_id=chat_id,
			sender_uid=str(record["senderUid"]),
			sender_display_name=str(record.get("senderName") or ""),
			avatar_ref=str(record.get("senderAvatar") or ""),
			content=str(record.get("content") or ""),
			server_timestamp=int(record["timestamp"]),
			seq=int(record["seq"]),
			attachments=tuple(AttachmentMeta(**item) for item in record.get("attachments") or ()),
			sender_name_color=record.get("senderNameColor"),
		)

	def to_dict(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"chat_id": self.chat_id,
			"sender_uid": self.sender_uid,
			"sender_display_name": self.sender_display_name,
			"avatar_ref": self.avatar_ref,
			"content": self.content,
			"server_timestamp": self.server_timestamp,
			"seq": self.seq,
			"attachments": [dict(_attachment_items(meta)) for meta in self.attachments],
			"sender_name_color": self.sender_name_color,
		}


def _attachment_items(meta: AttachmentMeta):
	return (
		("attachment_id", meta.attachment_id),
		("media_type", meta.media_type),
		("size_bytes", meta.size_bytes),
		("file_name", meta.file_name),
		("remote_url", meta.remote_url),
	)
