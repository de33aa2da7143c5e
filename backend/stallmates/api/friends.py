"""REST API surface for friend search, requests, friendships and recommendations."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from stallmates.api.errors import map_error
from stallmates.domain.common.errors import StallmatesError
from stallmates.domain.social import recommendations, service
from stallmates.domain.social.models import FriendshipResult
from stallmates.domain.social.schemas import (
	FriendRequestSend,
	FriendRequestSummary,
	FriendshipResultOut,
	FriendSummary,
	ReconcileRequest,
	RecommendationOut,
	UserSearchResult,
)
from stallmates.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


def _friendship_response(result: FriendshipResult) -> JSONResponse:
	"""Partial outcomes are reported as 207 so clients can surface them."""
	body = FriendshipResultOut(
		user_id=result.user_a,
		friend_id=result.user_b,
		friends=result.friends,
		outcome=result.outcome.value,
		residual=list(result.residual),
	)
	code = status.HTTP_200_OK if result.ok else status.HTTP_207_MULTI_STATUS
	return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


@router.get("/users/search", response_model=List[UserSearchResult])
async def search_users(
	q: str = Query(..., min_length=1, max_length=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[UserSearchResult]:
	return await service.search(auth_user, q)


@router.post("/friends/requests", response_model=FriendRequestSummary, status_code=status.HTTP_201_CREATED)
async def send_request(
	payload: FriendRequestSend,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	try:
		request = await service.send_request(auth_user, payload.to_user_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return service.summarise(request)


@router.post("/friends/requests/{request_id}/accept", response_model=FriendshipResultOut)
async def accept_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> JSONResponse:
	try:
		result = await service.accept_request(auth_user, request_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return _friendship_response(result)


@router.post("/friends/requests/{request_id}/reject", response_model=FriendRequestSummary)
async def reject_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	try:
		request = await service.reject_request(auth_user, request_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return service.summarise(request)


@router.post("/friends/requests/{request_id}/cancel", response_model=FriendRequestSummary)
async def cancel_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FriendRequestSummary:
	try:
		request = await service.cancel_request(auth_user, request_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return service.summarise(request)


@router.get("/friends/requests/incoming", response_model=List[FriendRequestSummary])
async def list_incoming(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[FriendRequestSummary]:
	return await service.list_incoming(auth_user)


@router.get("/friends/requests/outgoing", response_model=List[FriendRequestSummary])
async def list_outgoing(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[FriendRequestSummary]:
	return await service.list_outgoing(auth_user)


@router.get("/friends", response_model=List[FriendSummary])
async def list_friends(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[FriendSummary]:
	return await service.list_friends(auth_user)


@router.delete("/friends/{friend_id}", response_model=FriendshipResultOut)
async def remove_friend(
	friend_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> JSONResponse:
	try:
		result = await service.remove_friend(auth_user, friend_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return _friendship_response(result)


@router.post("/friends/reconcile", response_model=FriendshipResultOut)
async def reconcile(
	payload: ReconcileRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> JSONResponse:
	try:
		result = await service.reconcile(auth_user.id, payload.friend_id, payload.keep, actor_id=auth_user.id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return _friendship_response(result)


@router.get("/friends/recommendations", response_model=List[RecommendationOut])
async def get_recommendations(
	refresh: bool = Query(default=False),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[RecommendationOut]:
	items = await recommendations.get_recommendations(auth_user.id, refresh=refresh)
	return [RecommendationOut(user_id=i.user_id, display_name=i.display_name, mutual_friends=i.mutual_friends) for i in items]


@router.post("/friends/recommendations/{candidate_id}/dismiss", response_model=List[RecommendationOut])
async def dismiss_recommendation(
	candidate_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[RecommendationOut]:
	items = await recommendations.dismiss(auth_user.id, candidate_id)
	return [RecommendationOut(user_id=i.user_id, display_name=i.display_name, mutual_friends=i.mutual_friends) for i in items]
