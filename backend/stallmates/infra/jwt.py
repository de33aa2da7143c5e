"""Access tokens: HS256 JWTs naming the user and their presence session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from jwt import InvalidTokenError

from stallmates.domain.common import clock
from stallmates.settings import settings

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("exp", "iat", "iss", "aud", "sub", "sid")


@dataclass(slots=True)
class AccessClaims:
	user_id: str
	session_id: str
	display_name: Optional[str]
	expires_at: int


def encode_access(user_id: str, session_id: str, display_name: Optional[str] = None) -> str:
	issued = int(clock.now_ts())
	body: Dict[str, Any] = {
		"iss": settings.jwt_issuer,
		"aud": settings.jwt_audience,
		"iat": issued,
		"exp": issued + settings.access_ttl_minutes * 60,
		"sub": user_id,
		"sid": session_id,
	}
	if display_name:
		body["name"] = display_name
	return jwt.encode(body, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> AccessClaims:
	"""Validated claims; raises ``jwt.InvalidTokenError`` (or a subclass) otherwise."""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=[ALGORITHM],
		audience=settings.jwt_audience,
		issuer=settings.jwt_issuer,
		leeway=5,
		options={"require": list(REQUIRED_CLAIMS)},
	)
	user_id = str(payload.get("sub") or "").strip()
	session_id = str(payload.get("sid") or "").strip()
	if not user_id or not session_id:
		raise InvalidTokenError("blank_subject_or_session")
	name = payload.get("name")
	return AccessClaims(
		user_id=user_id,
		session_id=session_id,
		display_name=str(name) if name else None,
		expires_at=int(payload["exp"]),
	)
