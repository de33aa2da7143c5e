"""Pydantic schemas for friend requests, friendships and recommendations."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class FriendRequestSend(BaseModel):
	to_user_id: str = Field(..., min_length=1, description="Target user for the request")


class FriendRequestSummary(BaseModel):
	id: str
	sender_id: str
	receiver_id: str
	status: Literal["pending", "accepted", "rejected", "cancelled"]
	created_at: float
	updated_at: Optional[float] = None
	sender_display_name: Optional[str] = None
	receiver_display_name: Optional[str] = None


class FriendSummary(BaseModel):
	user_id: str
	display_name: str
	online: bool = False
	available: bool = False


class FriendshipResultOut(BaseModel):
	user_id: str
	friend_id: str
	friends: bool
	outcome: Literal["complete", "repaired", "partial"]
	residual: List[str] = Field(default_factory=list)


class ReconcileRequest(BaseModel):
	friend_id: str = Field(..., min_length=1)
	keep: Optional[bool] = None


class UserSearchResult(BaseModel):
	user_id: str
	display_name: str
	email: Optional[str] = None
	is_friend: bool = False


class RecommendationOut(BaseModel):
	user_id: str
	display_name: str
	mutual_friends: int


class FriendUpdatePayload(BaseModel):
	user_id: str
	friend_id: str
	status: Literal["accepted", "none"]
