"""Authentication helpers for FastAPI endpoints.

Identity is established upstream; requests reach this service with the
caller's uid in ``X-User-Id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status


@dataclass(slots=True)
class AuthenticatedUser:
	id: str


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> AuthenticatedUser:
	uid = (x_user_id or "").strip()
	if not uid:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")
	return AuthenticatedUser(id=uid)
