"""Posts and the friends timeline."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from stallmates.api.errors import map_error
from stallmates.domain.common.errors import StallmatesError
from stallmates.domain.identity import service as identity
from stallmates.domain.timeline import service
from stallmates.domain.timeline.schemas import PostCreate, PostOut, TimelineOut
from stallmates.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.post("/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
	payload: PostCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PostOut:
	try:
		profile = await identity.get_profile(auth_user.id)
		post = await service.create_post(profile.id, profile.display_name, payload.content)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return PostOut.from_post(post)


@router.get("/timeline", response_model=TimelineOut)
async def get_timeline(
	cursor: Optional[str] = Query(default=None),
	refresh: bool = Query(default=False),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> TimelineOut:
	profile = await identity.find_profile(auth_user.id)
	friends = list(profile.friends) if profile else []
	try:
		page = await service.get_timeline(auth_user.id, friends, cursor=cursor, refresh=refresh)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return TimelineOut.from_page(page)


@router.get("/posts/{post_id}", response_model=PostOut)
async def get_post(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PostOut:
	try:
		post = await service.get_post(post_id, auth_user.id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return PostOut.from_post(post)


@router.post("/posts/{post_id}/like", response_model=PostOut)
async def toggle_like(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PostOut:
	try:
		post = await service.toggle_like(post_id, auth_user.id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return PostOut.from_post(post)


@router.delete("/posts/{post_id}")
async def delete_post(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
	try:
		await service.delete_post(post_id, auth_user.id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return {"ok": True}
