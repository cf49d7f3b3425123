"""REST API surface for user profiles."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from linkup.domain.identity import service
from linkup.domain.identity.models import UserProfile
from linkup.domain.identity.schemas import ProfileCreateRequest, ProfilePatchRequest, ProfileResponse
from linkup.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/profiles", tags=["profile"])


def _response(profile: UserProfile) -> ProfileResponse:
	return ProfileResponse(**profile.to_dict())


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
	payload: ProfileCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileResponse:
	profile = await service.create_profile(
		auth_user.id,
		payload.username,
		display_name=payload.display_name,
		avatar_ref=payload.avatar_ref,
		bio=payload.bio,
		title=payload.title,
		name_color=payload.name_color,
	)
	return _response(profile)


@router.get("/me", response_model=ProfileResponse)
async def my_profile(auth_user: AuthenticatedUser = Depends(get_current_user)) -> ProfileResponse:
	return _response(await service.get_profile(auth_user.id))


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
	payload: ProfilePatchRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileResponse:
	return _response(await service.update_profile(auth_user.id, **payload.to_fields()))


@router.get("/by-username/{username}", response_model=ProfileResponse)
async def profile_by_username(
	username: str,
	_: AuthenticatedUser = Depends(get_current_user),
) -> ProfileResponse:
	uid = await service.resolve_username(username)
	return _response(await service.get_profile(uid))
