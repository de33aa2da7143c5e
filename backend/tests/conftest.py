import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from argon2 import PasswordHasher
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from stallmates.domain.games import sockets as game_sockets
from stallmates.infra import password, postgres
from stallmates.infra.documents import MemoryDocumentStore, set_store
from stallmates.main import app
from stallmates.settings import settings


# Ensure a selector-based event loop policy on Windows to avoid Proactor issues with async IO
if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except Exception:
		# Non-fatal; proceed with default policy
		pass


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from stallmates.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def memory_store():
	store = MemoryDocumentStore()
	set_store(store)
	try:
		yield store
	finally:
		set_store(None)
		game_sockets._listeners.clear()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via the X-User-Id header, which is only accepted in
	dev mode.
	"""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
	monkeypatch.setattr(password, "hasher", PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1))


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def make_user(memory_store):
	"""Write a profile document directly; registration is covered separately."""
	from stallmates.domain.identity.models import USERS, UserProfile

	async def _make(uid, display_name=None, friends=()):
		profile = UserProfile(
			id=uid,
			email=f"{uid}@example.com",
			display_name=display_name or uid.title(),
			friends=list(friends),
			created_at=1_700_000_000.0,
		)
		await memory_store.set(USERS, uid, profile.to_document())
		return profile

	return _make
