"""Pydantic schemas for registration, sign-in and profiles."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from stallmates.domain.identity.models import UserProfile


class RegisterRequest(BaseModel):
	email: str = Field(..., min_length=3, max_length=254)
	password: str = Field(..., min_length=6, max_length=256)
	display_name: str = Field(..., min_length=1, max_length=50)


class SignInRequest(BaseModel):
	email: str
	password: str


class ProfileUpdateRequest(BaseModel):
	display_name: str = Field(..., min_length=1, max_length=50)


class ProfileOut(BaseModel):
	id: str
	email: str
	display_name: str
	friends: List[str] = Field(default_factory=list)
	created_at: Optional[float] = None

	@classmethod
	def from_profile(cls, profile: UserProfile, *, include_email: bool = True) -> "ProfileOut":
		return cls(
			id=profile.id,
			email=profile.email if include_email else "",
			display_name=profile.display_name,
			friends=list(profile.friends),
			created_at=profile.created_at,
		)


class SignInResponse(BaseModel):
	access_token: str
	token_type: str = "bearer"
	session_id: str
	profile: ProfileOut
