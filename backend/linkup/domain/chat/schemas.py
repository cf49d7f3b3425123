"""Pydantic schemas for chats and messages."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class AttachmentPayload(BaseModel):
	attachment_id: Optional[str] = None
	media_type: str
	size_bytes: Optional[int] = Field(default=None, ge=0)
	file_name: Optional[str] = None
	remote_url: Optional[str] = None


class CreateChatRequest(BaseModel):
	name: str
	member_uids: List[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
	chat_id: str
	kind: str
	display_name: Optional[str] = None
	created_by: Optional[str] = None
	created_at: Optional[int] = None
	members: List[str] = Field(default_factory=list)


class DirectChatResponse(BaseModel):
	chat_id: str


class SendMessageRequest(BaseModel):
	content: str = ""
	attachments: List[AttachmentPayload] = Field(default_factory=list)


class MessageResponse(BaseModel):
	id: str
	chat_id: str
	sender_uid: str
	sender_display_name: str
	avatar_ref: str
	content: str
	server_timestamp: int
	seq: int
	attachments: List[AttachmentPayload] = Field(default_factory=list)
	sender_name_color: Optional[str] = None


class MessageListResponse(BaseModel):
	items: List[MessageResponse]
