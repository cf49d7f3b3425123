"""REST API surface for chats and their message streams."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from linkup.domain.chat import registry, stream
from linkup.domain.chat.models import Chat, Message
from linkup.domain.chat.schemas import (
	ChatResponse,
	CreateChatRequest,
	DirectChatResponse,
	MessageListResponse,
	MessageResponse,
	SendMessageRequest,
)
from linkup.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chats", tags=["chat"])


def _chat_response(chat: Chat) -> ChatResponse:
	return ChatResponse(**chat.to_dict())


def _message_response(message: Message) -> MessageResponse:
	return MessageResponse(**message.to_dict())


@router.post("/groups", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
	payload: CreateChatRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ChatResponse:
	chat = await registry.create_group_chat(auth_user.id, payload.name, payload.member_uids)
	return _chat_response(chat)


@router.post("/teams", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
	payload: CreateChatRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ChatResponse:
	chat = await registry.create_team_chat(auth_user.id, payload.name, payload.member_uids)
	return _chat_response(chat)


@router.post("/direct/{uid}", response_model=DirectChatResponse)
async def open_direct(
	uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> DirectChatResponse:
	return DirectChatResponse(chat_id=await registry.get_or_create_direct_chat(auth_user.id, uid))


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ChatResponse:
	await stream.ensure_member(chat_id, auth_user.id)
	return _chat_response(await registry.get_chat(chat_id, viewer_uid=auth_user.id))


@router.get("/{chat_id}/messages", response_model=MessageListResponse)
async def list_messages(
	chat_id: str,
	limit: Optional[int] = Query(default=None, ge=1, le=500),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MessageListResponse:
	await stream.ensure_member(chat_id, auth_user.id)
	messages = await stream.list_messages(chat_id, limit)
	return MessageListResponse(items=[_message_response(message) for message in messages])


@router.post("/{chat_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
	chat_id: str,
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MessageResponse:
	attachments = [item.model_dump() for item in payload.attachments]
	message = await stream.append_message(chat_id, auth_user.id, payload.content, attachments)
	return _message_response(message)
