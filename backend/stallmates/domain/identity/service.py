"""Registration, sign-in and profile documents."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from stallmates.domain.common import access, clock
from stallmates.domain.common.errors import AlreadyExists, InvalidInput, NotAuthenticated, NotFound
from stallmates.domain.identity.models import (
	CREDENTIALS,
	MAX_DISPLAY_NAME_LENGTH,
	MIN_PASSWORD_LENGTH,
	USERS,
	SignInResult,
	UserProfile,
)
from stallmates.domain.presence import service as presence
from stallmates.domain.presence.models import ClientSession
from stallmates.infra import jwt as jwt_helper
from stallmates.infra.documents import DocumentExists, get_store
from stallmates.infra.password import hash_password, needs_rehash, verify_password
from stallmates.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def normalise_email(email: str) -> str:
	return (email or "").strip().lower()


def _validate_registration(email: str, password: str, display_name: str) -> None:
	local, _, domain = email.partition("@")
	if not local or "." not in domain:
		raise InvalidInput("invalid_email")
	if len(password or "") < MIN_PASSWORD_LENGTH:
		raise InvalidInput("weak_password")
	if not display_name or len(display_name) > MAX_DISPLAY_NAME_LENGTH:
		raise InvalidInput("invalid_display_name")


async def register(email: str, password: str, display_name: str) -> UserProfile:
	email_norm = normalise_email(email)
	name = (display_name or "").strip()
	_validate_registration(email_norm, password, name)
	store = get_store()
	uid = str(uuid.uuid4())
	now = clock.now_ts()
	try:
		await store.create(
			CREDENTIALS,
			email_norm,
			{
				"uid": uid,
				"passwordHash": hash_password(password),
				"displayName": name,
				"createdAt": now,
			},
		)
	except DocumentExists:
		obs_metrics.inc_identity("register", "email_taken")
		raise AlreadyExists("email_taken") from None
	profile = UserProfile(id=uid, email=email_norm, display_name=name, friends=[], created_at=now)
	await store.create(USERS, uid, profile.to_document())
	obs_metrics.inc_identity("register", "ok")
	logger.info("identity registered", extra={"user_id": uid})
	return profile


async def sign_in(email: str, password: str) -> SignInResult:
	email_norm = normalise_email(email)
	credentials = await get_store().get(CREDENTIALS, email_norm)
	if credentials is None or not verify_password(str(credentials.get("passwordHash") or ""), password or ""):
		obs_metrics.inc_identity("sign_in", "rejected")
		raise NotAuthenticated("invalid_credentials")
	uid = str(credentials.get("uid"))
	if needs_rehash(str(credentials.get("passwordHash"))):
		await get_store().update(CREDENTIALS, email_norm, {"passwordHash": hash_password(password)})
		logger.info("password hash upgraded", extra={"user_id": uid})
	profile = await ensure_profile(uid, email_norm, str(credentials.get("displayName") or ""))
	session = await presence.attach(uid)
	token = jwt_helper.encode_access(uid, session.session_token, profile.display_name)
	obs_metrics.inc_identity("sign_in", "ok")
	return SignInResult(profile=profile, access_token=token, session_id=session.session_token)


async def sign_out(session: ClientSession) -> None:
	await presence.detach(session)
	obs_metrics.inc_identity("sign_out", "ok")


async def get_profile(uid: str) -> UserProfile:
	doc = await get_store().get(USERS, uid)
	if doc is None:
		raise NotFound("user_missing")
	return UserProfile.from_document(doc)


async def find_profile(uid: str) -> Optional[UserProfile]:
	doc = await get_store().get(USERS, uid)
	return UserProfile.from_document(doc) if doc else None


async def ensure_profile(uid: str, email: str, display_name: str) -> UserProfile:
	"""Return the profile, re-creating the document if it went missing."""
	existing = await find_profile(uid)
	if existing is not None:
		return existing
	profile = UserProfile(
		id=uid,
		email=normalise_email(email),
		display_name=display_name or normalise_email(email).split("@")[0],
		friends=[],
		created_at=clock.now_ts(),
	)
	try:
		await get_store().create(USERS, uid, profile.to_document())
		logger.warning("profile re-created", extra={"user_id": uid})
	except DocumentExists:
		return await get_profile(uid)
	return profile


async def get_profiles(uids: Iterable[str]) -> List[UserProfile]:
	docs = await get_store().get_many(USERS, uids)
	return [UserProfile.from_document(doc) for doc in docs]


async def get_profile_map(uids: Iterable[str]) -> Dict[str, UserProfile]:
	return {profile.id: profile for profile in await get_profiles(uids)}


async def update_profile(actor_id: str, owner_id: str, changes: Dict[str, object]) -> UserProfile:
	"""Apply a profile write subject to the non-owner field rule."""
	access.guard_profile_update(actor_id, owner_id, changes.keys())
	doc = await get_store().update(USERS, owner_id, changes)
	return UserProfile.from_document(doc)


async def rename(actor_id: str, display_name: str) -> UserProfile:
	name = (display_name or "").strip()
	if not name or len(name) > MAX_DISPLAY_NAME_LENGTH:
		raise InvalidInput("invalid_display_name")
	await get_profile(actor_id)
	return await update_profile(actor_id, actor_id, {"displayName": name})
