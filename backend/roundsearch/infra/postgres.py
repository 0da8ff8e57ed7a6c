"""Shared asyncpg pool for the round store."""

from __future__ import annotations

import asyncio
from typing import Optional

import asyncpg

from roundsearch.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None
_pool_lock = asyncio.Lock()


async def init_pool() -> asyncpg.pool.Pool:
	"""Create the pool once; concurrent first searches share the same one."""
	global _pool
	async with _pool_lock:
		if _pool is None:
			_pool = await asyncpg.create_pool(
				dsn=settings.postgres_url,
				min_size=settings.postgres_min_pool_size,
				max_size=settings.postgres_max_pool_size,
				command_timeout=settings.postgres_command_timeout,
				ssl="require" if settings.postgres_ssl else "disable",
				server_settings={"application_name": settings.service_name},
			)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		return await init_pool()
	return _pool


async def ping(timeout: float) -> None:
	"""Round-trip a trivial query; raises when the store is unreachable."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)


async def close_pool() -> None:
	global _pool
	async with _pool_lock:
		if _pool is not None:
			await _pool.close()
			_pool = None
