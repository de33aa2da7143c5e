"""Request and socket authentication.

A Bearer access token is always honoured. Outside production-like
environments the ``X-User-Id``/``X-Session-Id`` headers are accepted too so
local tools and tests can act as any user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from stallmates.infra import jwt as jwt_helper
from stallmates.settings import settings

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None
	session_id: Optional[str] = None


def user_from_token(token: str) -> AuthenticatedUser:
	"""Resolve a raw access token or raise ValueError with a reason."""
	token = (token or "").strip()
	if not token:
		raise ValueError("empty_token")
	try:
		claims = jwt_helper.decode_access(token)
	except InvalidTokenError as exc:
		logger.info("access token rejected", extra={"reason": type(exc).__name__})
		raise ValueError("invalid_token") from None
	return AuthenticatedUser(id=claims.user_id, display_name=claims.display_name, session_id=claims.session_id)


def _unauthorised() -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_401_UNAUTHORIZED,
		detail="invalid_token",
		headers={"WWW-Authenticate": "Bearer"},
	)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_session_id: Optional[str] = Header(default=None, alias="X-Session-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> AuthenticatedUser:
	if credentials is not None:
		try:
			return user_from_token(credentials.credentials)
		except ValueError:
			raise _unauthorised() from None
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id.strip(), session_id=x_session_id)
	raise _unauthorised()
