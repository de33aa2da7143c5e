"""Shared asyncpg pool backing the Postgres document store."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from stallmates.settings import settings

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None


async def init_pool() -> asyncpg.Pool:
	global _pool
	if _pool is None:
		# localhost can resolve to ::1 first where Postgres listens on IPv4 only
		dsn = settings.postgres_url.replace("localhost", "127.0.0.1")
		_pool = await asyncpg.create_pool(
			dsn=dsn,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
		logger.info(
			"postgres pool ready",
			extra={"min_size": settings.postgres_min_pool_size, "max_size": settings.postgres_max_pool_size},
		)
	return _pool


async def get_pool() -> asyncpg.Pool:
	return _pool if _pool is not None else await init_pool()


@asynccontextmanager
async def connection(pool: Optional[asyncpg.Pool] = None, *, transactional: bool = False) -> AsyncIterator[asyncpg.Connection]:
	"""Borrow a connection, optionally wrapped in one transaction."""
	target = pool if pool is not None else await get_pool()
	async with target.acquire() as conn:
		if not transactional:
			yield conn
			return
		async with conn.transaction():
			yield conn


async def ping() -> None:
	async with connection() as conn:
		await conn.execute("SELECT 1")


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
		logger.info("postgres pool closed")
