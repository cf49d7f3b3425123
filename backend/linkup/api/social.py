"""REST API surface for friend requests, friendships and blocks."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from linkup.domain.social import service
from linkup.domain.social.schemas import BlockResult, FriendRequestSend, FriendRequestSummary, UidList
from linkup.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/friends")


@router.post("/requests", response_model=FriendRequestSummary, status_code=status.HTTP_201_CREATED)
async def send_request(
	payload: FriendRequestSend,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	request = await service.send_friend_request(auth_user.id, payload.to_uid)
	return FriendRequestSummary(**request.to_dict())


@router.get("/requests", response_model=List[FriendRequestSummary])
async def incoming_requests(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[FriendRequestSummary]:
	requests = await service.list_incoming_requests(auth_user.id)
	return [FriendRequestSummary(**request.to_dict()) for request in requests]


@router.post("/requests/{from_uid}/accept", response_model=FriendRequestSummary)
async def accept_request(
	from_uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	request = await service.respond_to_request(auth_user.id, from_uid, accept=True)
	return FriendRequestSummary(**request.to_dict())


@router.post("/requests/{from_uid}/decline", response_model=FriendRequestSummary)
async def decline_request(
	from_uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	request = await service.respond_to_request(auth_user.id, from_uid, accept=False)
	return FriendRequestSummary(**request.to_dict())


@router.post("/requests/{to_uid}/cancel", response_model=FriendRequestSummary)
async def cancel_request(
	to_uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	request = await service.cancel_request(auth_user.id, to_uid)
	return FriendRequestSummary(**request.to_dict())


@router.get("", response_model=UidList)
async def friends_list(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UidList:
	return UidList(uids=await service.list_friends(auth_user.id))


@router.get("/blocked", response_model=UidList)
async def blocked_list(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UidList:
	return UidList(uids=await service.list_blocked(auth_user.id))


@router.post("/{uid}/block", response_model=BlockResult)
async def block_user(
	uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> BlockResult:
	unfriended = await service.block_user(auth_user.id, uid)
	return BlockResult(blocked_uid=uid, blocked=True, unfriended=unfriended)


@router.post("/{uid}/unblock", response_model=BlockResult)
async def unblock_user(
	uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> BlockResult:
	await service.unblock_user(auth_user.id, uid)
	return BlockResult(blocked_uid=uid, blocked=False)
