"""Process-wide asyncpg pool."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import asyncpg

from gatherly.settings import settings

_LOG = logging.getLogger(__name__)

_pool: Optional[asyncpg.pool.Pool] = None
_pool_lock = asyncio.Lock()


async def _prepare_connection(conn: asyncpg.Connection) -> None:
	# Event windows and cursors compare timestamptz values; keep sessions in UTC.
	await conn.execute("SET TIME ZONE 'UTC'")


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	async with _pool_lock:
		if _pool is None:
			_pool = await asyncpg.create_pool(
				dsn=settings.postgres_url,
				min_size=settings.postgres_min_pool_size,
				max_size=settings.postgres_max_pool_size,
				ssl="require" if settings.postgres_ssl else "disable",
				command_timeout=settings.postgres_command_timeout_seconds,
				init=_prepare_connection,
			)
			_LOG.info(
				"postgres.pool_ready",
				extra={"min_size": settings.postgres_min_pool_size, "max_size": settings.postgres_max_pool_size},
			)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def ping(timeout: float = 0.5) -> None:
	"""Round-trip ``SELECT 1``; raises when the database cannot answer in time."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		await asyncio.wait_for(conn.fetchval("SELECT 1"), timeout=timeout)


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
		_LOG.info("postgres.pool_closed")
