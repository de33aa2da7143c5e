from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stallmates.api import friends, games, identity, ops, presence, timeline
from stallmates.api.errors import install_error_handlers
from stallmates.domain.games.sockets import GamesNamespace
from stallmates.domain.games.sockets import set_namespace as set_games_namespace
from stallmates.domain.presence import service as presence_service
from stallmates.domain.presence.sockets import PresenceNamespace
from stallmates.domain.presence.sockets import set_namespace as set_presence_namespace
from stallmates.domain.social.sockets import SocialNamespace
from stallmates.domain.social.sockets import set_namespace as set_social_namespace
from stallmates.infra import postgres
from stallmates.infra.documents import PostgresDocumentStore, get_store
from stallmates.obs import init as obs_init
from stallmates.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	store = get_store()
	if isinstance(store, PostgresDocumentStore):
		await postgres.init_pool()
		await store.ensure_schema()
	worker_tasks: list[asyncio.Task] = [
		asyncio.create_task(presence_service.run_session_sweeper(), name="presence-sweeper"),
	]
	try:
		yield
	finally:
		for task in worker_tasks:
			task.cancel()
		await asyncio.gather(*worker_tasks, return_exceptions=True)
		if isinstance(store, PostgresDocumentStore):
			await postgres.close_pool()


app = FastAPI(title="Stallmates", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:5173"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True
if "*" in allow_origins:
	allow_origins = (
		["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000", "http://127.0.0.1:3000"]
		if settings.is_dev()
		else [origin for origin in allow_origins if origin != "*"]
	)

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
presence_namespace = PresenceNamespace()
sio.register_namespace(presence_namespace)
set_presence_namespace(presence_namespace)
social_namespace = SocialNamespace()
sio.register_namespace(social_namespace)
set_social_namespace(social_namespace)
games_namespace = GamesNamespace()
sio.register_namespace(games_namespace)
set_games_namespace(games_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(identity.router, tags=["identity"])
app.include_router(presence.router, tags=["presence"])
app.include_router(friends.router, tags=["social"])
app.include_router(games.router, tags=["games"])
app.include_router(timeline.router, tags=["timeline"])
app.include_router(ops.router)
