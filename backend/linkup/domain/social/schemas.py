"""Pydantic schemas for friend requests, friendships and blocks."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class FriendRequestSend(BaseModel):
	to_uid: str = Field(..., min_length=1, description="Recipient of the request")


class FriendRequestSummary(BaseModel):
	from_uid: str
	to_uid: str
	sender_username: str
	timestamp: int
	status: Literal["pending", "accepted", "declined", "cancelled"]


class BlockResult(BaseModel):
	blocked_uid: str
	blocked: bool
	unfriended: bool = False


class UidList(BaseModel):
	uids: List[str]
