"""Presence lookups, availability toggle and visit stats."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from stallmates.domain.presence import service
from stallmates.domain.presence.models import ClientSession
from stallmates.domain.presence.schemas import (
	AvailabilityRequest,
	PresenceLookup,
	PresenceOut,
	VisitStatsOut,
)
from stallmates.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


def _session(auth_user: AuthenticatedUser) -> ClientSession:
	if not auth_user.session_id:
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="session_required")
	return ClientSession(auth_user.id, auth_user.session_id)


@router.get("/presence/me", response_model=PresenceOut)
async def my_presence(auth_user: AuthenticatedUser = Depends(get_current_user)) -> PresenceOut:
	return PresenceOut.from_record(await service.get_record(auth_user.id))


@router.post("/presence/lookup", response_model=List[PresenceOut])
async def lookup(
	payload: PresenceLookup,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[PresenceOut]:
	records = await service.get_records(payload.user_ids)
	return [PresenceOut.from_record(records[user_id]) for user_id in payload.user_ids if user_id in records]


@router.post("/presence/availability", response_model=PresenceOut)
async def set_availability(
	payload: AvailabilityRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PresenceOut:
	record = await service.set_availability(_session(auth_user), payload.available)
	return PresenceOut.from_record(record)


@router.post("/presence/heartbeat")
async def heartbeat(auth_user: AuthenticatedUser = Depends(get_current_user)) -> dict:
	alive = await service.touch(_session(auth_user))
	if not alive:
		raise HTTPException(status.HTTP_410_GONE, detail="session_gone")
	return {"ok": True}


@router.get("/presence/{user_id}", response_model=PresenceOut)
async def get_presence(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PresenceOut:
	return PresenceOut.from_record(await service.get_record(user_id))


@router.get("/presence/{user_id}/stats", response_model=VisitStatsOut)
async def visit_stats(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> VisitStatsOut:
	return VisitStatsOut.from_stats(await service.visit_stats(user_id))
