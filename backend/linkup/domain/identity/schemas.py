"""Pydantic schemas for profile registration and edits."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ProfileCreateRequest(BaseModel):
	username: str
	display_name: Optional[str] = None
	avatar_ref: str = ""
	bio: str = ""
	title: Optional[str] = None
	name_color: Optional[str] = None


class ProfilePatchRequest(BaseModel):
	display_name: Optional[str] = None
	avatar_ref: Optional[str] = None
	bio: Optional[str] = None
	title: Optional[str] = None
	name_color: Optional[str] = None

	def to_fields(self) -> dict[str, Optional[str]]:
		return {
			"displayName": self.display_name,
			"avatarRef": self.avatar_ref,
			"bio": self.bio,
			"title": self.title,
			"nameColor": self.name_color,
		}


class ProfileResponse(BaseModel):
	uid: str
	username: str
	display_name: str
	avatar_ref: str = ""
	bio: str = ""
	title: Optional[str] = None
	name_color: Optional[str] = None
	friends_count: int = Field(default=0)
