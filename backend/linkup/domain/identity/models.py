"""Domain models for user profiles."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")

# Fields an owner may change after registration. uid, username and
# friendsCount are managed by the service.
EDITABLE_FIELDS = ("displayName", "avatarRef", "bio", "title", "nameColor")


@dataclass(slots=True)
class UserProfile:
	uid: str
	username: str
	display_name: str
	avatar_ref: str = ""
	bio: str = ""
	title: Optional[str] = None
	name_color: Optional[str] = None
	friends_count: int = 0

	@classmethod
	def from_record(cls, record: Mapping[str, str]) -> "UserProfile":
		return cls(
			uid=record["uid"],
			username=record["username"],
			display_name=record.get("displayName") or record["username"],
			avatar_ref=record.get("avatarRef") or "",
			bio=record.get("bio") or "",
			title=record.get("title") or None,
			name_color=record.get("nameColor") or None,
			friends_count=int(record.get("friendsCount") or 0),
		)

	def to_record(self) -> dict[str, str | int]:
		record: dict[str, str | int] = {
			"uid": self.uid,
			"username": self.username,
			"displayName": self.display_name,
			"avatarRef": self.avatar_ref,
			"bio": self.bio,
			"friendsCount": self.friends_count,
		}
		if self.title:
			record["title"] = self.title
		if self.name_color:
			record["nameColor"] = self.name_color
		return record

	def to_dict(self) -> dict:
		return {
			"uid": self.uid,
			"username": self.username,
			"display_name": self.display_name,
			"avatar_ref": self.avatar_ref,
			"bio": self.bio,
			"title": self.title,
			"name_color": self.name_color,
			"friends_count": self.friends_count,
		}
