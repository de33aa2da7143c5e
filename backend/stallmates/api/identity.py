"""Registration, sign-in/out and profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from stallmates.api.errors import map_error
from stallmates.domain.common.errors import StallmatesError
from stallmates.domain.identity import service
from stallmates.domain.identity.schemas import (
	ProfileOut,
	ProfileUpdateRequest,
	RegisterRequest,
	SignInRequest,
	SignInResponse,
)
from stallmates.domain.presence.models import ClientSession
from stallmates.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.post("/auth/register", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest) -> ProfileOut:
	try:
		profile = await service.register(payload.email, payload.password, payload.display_name)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return ProfileOut.from_profile(profile)


@router.post("/auth/sign-in", response_model=SignInResponse)
async def sign_in(payload: SignInRequest) -> SignInResponse:
	try:
		result = await service.sign_in(payload.email, payload.password)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return SignInResponse(
		access_token=result.access_token,
		session_id=result.session_id,
		profile=ProfileOut.from_profile(result.profile),
	)


@router.post("/auth/sign-out")
async def sign_out(auth_user: AuthenticatedUser = Depends(get_current_user)) -> dict:
	if not auth_user.session_id:
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="session_required")
	await service.sign_out(ClientSession(auth_user.id, auth_user.session_id))
	return {"ok": True}


@router.get("/auth/me", response_model=ProfileOut)
async def me(auth_user: AuthenticatedUser = Depends(get_current_user)) -> ProfileOut:
	try:
		profile = await service.get_profile(auth_user.id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return ProfileOut.from_profile(profile)


@router.patch("/profile/me", response_model=ProfileOut)
async def rename(
	payload: ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileOut:
	try:
		profile = await service.rename(auth_user.id, payload.display_name)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return ProfileOut.from_profile(profile)


@router.get("/profile/{user_id}", response_model=ProfileOut)
async def get_profile(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileOut:
	try:
		profile = await service.get_profile(user_id)
	except StallmatesError as exc:
		raise map_error(exc) from None
	return ProfileOut.from_profile(profile, include_email=profile.id == auth_user.id)
