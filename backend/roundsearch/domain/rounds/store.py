"""Document store adapters consumed by round search.

Search only needs four primitives: a geohash range query, a date-window
query with keyset continuation, a read by id, and an upsert that keeps the
denormalized geohash in sync with the coordinates.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol

import asyncpg

from roundsearch.domain.rounds import geohash
from roundsearch.settings import settings

Row = Mapping[str, Any]
Keyset = tuple[datetime, str]

ROUND_COLUMNS = (
	"id",
	"host_uid",
	"title",
	"visibility",
	"status",
	"start_time",
	"chosen_tee_time",
	"geo_lat",
	"geo_lng",
	"geohash",
	"max_players",
	"accepted_count",
	"request_count",
)
_COLUMN_DEFAULTS = {"max_players": 4, "accepted_count": 1, "request_count": 0}


class RoundStore(Protocol):
	async def range_query(self, start: str, end: str, *, limit: int) -> list[Row]:
		...

	async def date_window_query(
		self,
		start: datetime,
		end: datetime,
		*,
		status: Optional[str],
		visibility: str,
		after: Optional[Keyset],
		limit: int,
	) -> list[Row]:
		...

	async def get_round(self, round_id: str) -> Optional[Row]:
		...

	async def save_round(self, record: Mapping[str, Any]) -> Row:
		...


def with_geohash(record: Mapping[str, Any], *, precision: Optional[int] = None) -> dict[str, Any]:
	"""Copy of ``record`` whose ``geohash`` matches its coordinates."""

	data = dict(record)
	lat = data.get("geo_lat")
	lng = data.get("geo_lng")
	if isinstance(lat, (int, float)) and isinstance(lng, (int, float)):
		key = geohash.build_geo_key(float(lat), float(lng), precision or settings.rounds_storage_precision)
		data["geohash"] = key.geohash
	else:
		data["geo_lat"] = None
		data["geo_lng"] = None
		data["geohash"] = None
	return data


def _row_datetime(value: Any) -> Optional[datetime]:
	if isinstance(value, str):
		try:
			value = datetime.fromisoformat(value)
		except ValueError:
			return None
	if not isinstance(value, datetime):
		return None
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def row_effective_date(row: Row) -> Optional[datetime]:
	return _row_datetime(row.get("start_time")) or _row_datetime(row.get("chosen_tee_time"))


class MemoryRoundStore:
	"""In-process store with the same ordering semantics as the Postgres table."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.rows: dict[str, dict[str, Any]] = {}

	async def reset(self) -> None:
		async with self._lock:
			self.rows.clear()

	async def seed(self, rows: Iterable[Mapping[str, Any]]) -> None:
		"""Insert rows verbatim; malformed rows are allowed on purpose for tests."""

		async with self._lock:
			for row in rows:
				self.rows[str(row.get("id"))] = dict(row)

	async def range_query(self, start: str, end: str, *, limit: int) -> list[Row]:
		if limit <= 0:
			return []
		async with self._lock:
			hits = [
				dict(row)
				for row in self.rows.values()
				if isinstance(row.get("geohash"), str) and start <= row["geohash"] < end
			]
		hits.sort(key=lambda row: (row["geohash"], str(row.get("id"))))
		return hits[:limit]

	async def date_window_query(
		self,
		start: datetime,
		end: datetime,
		*,
		status: Optional[str],
		visibility: str,
		after: Optional[Keyset],
		limit: int,
	) -> list[Row]:
		if limit <= 0:
			return []
		async with self._lock:
			hits: list[tuple[datetime, str, dict[str, Any]]] = []
			for row in self.rows.values():
				effective = row_effective_date(row)
				if effective is None or not (start <= effective < end):
					continue
				if status is not None and row.get("status") != status:
					continue
				if row.get("visibility") != visibility:
					continue
				row_id = str(row.get("id"))
				if after is not None and (effective, row_id) <= after:
					continue
				hits.append((effective, row_id, dict(row)))
		hits.sort(key=lambda item: (item[0], item[1]))
		return [row for _, _, row in hits[:limit]]

	async def get_round(self, round_id: str) -> Optional[Row]:
		async with self._lock:
			row = self.rows.get(round_id)
			return dict(row) if row is not None else None

	async def save_round(self, record: Mapping[str, Any]) -> Row:
		data = with_geohash(record)
		async with self._lock:
			self.rows[str(data["id"])] = data
		return dict(data)


class PostgresRoundStore:
	"""asyncpg-backed store; the table and its indexes are created on first use."""

	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool
		self._schema_ready = False

	async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
		if self._schema_ready:
			return
		await conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS rounds (
				id TEXT PRIMARY KEY,
				host_uid TEXT NOT NULL,
				title TEXT NOT NULL,
				visibility TEXT NOT NULL,
				status TEXT NOT NULL,
				start_time TIMESTAMPTZ,
				chosen_tee_time TIMESTAMPTZ,
				geo_lat DOUBLE PRECISION,
				geo_lng DOUBLE PRECISION,
				geohash TEXT COLLATE "C",
				max_players INTEGER NOT NULL DEFAULT 4,
				accepted_count INTEGER NOT NULL DEFAULT 1,
				request_count INTEGER NOT NULL DEFAULT 0,
				created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
				updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
			);
			CREATE INDEX IF NOT EXISTS idx_rounds_geohash ON rounds (geohash);
			CREATE INDEX IF NOT EXISTS idx_rounds_discovery
				ON rounds (visibility, status, (COALESCE(start_time, chosen_tee_time)), id);
			"""
		)
		self._schema_ready = True

	async def range_query(self, start: str, end: str, *, limit: int) -> list[Row]:
		if limit <= 0:
			return []
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			rows = await conn.fetch(
				f"""
				SELECT {", ".join(ROUND_COLUMNS)}
				FROM rounds
				WHERE geohash >= $1 AND geohash < $2
				ORDER BY geohash, id
				LIMIT $3
				""",
				start,
				end,
				limit,
			)
		return [dict(row) for row in rows]

	async def date_window_query(
		self,
		start: datetime,
		end: datetime,
		*,
		status: Optional[str],
		visibility: str,
		after: Optional[Keyset],
		limit: int,
	) -> list[Row]:
		if limit <= 0:
			return []
		after_ts, after_id = after if after is not None else (None, None)
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			rows = await conn.fetch(
				f"""
				SELECT {", ".join(ROUND_COLUMNS)}
				FROM rounds
				WHERE COALESCE(start_time, chosen_tee_time) >= $1
					AND COALESCE(start_time, chosen_tee_time) < $2
					AND ($3::text IS NULL OR status = $3::text)
					AND visibility = $4
					AND (
						$5::timestamptz IS NULL
						OR (COALESCE(start_time, chosen_tee_time), id) > ($5::timestamptz, $6::text)
					)
				ORDER BY COALESCE(start_time, chosen_tee_time), id
				LIMIT $7
				""",
				start,
				end,
				status,
				visibility,
				after_ts,
				after_id,
				limit,
			)
		return [dict(row) for row in rows]

	async def get_round(self, round_id: str) -> Optional[Row]:
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			row = await conn.fetchrow(
				f"SELECT {', '.join(ROUND_COLUMNS)} FROM rounds WHERE id = $1",
				round_id,
			)
		return dict(row) if row is not None else None

	async def save_round(self, record: Mapping[str, Any]) -> Row:
		data = with_geohash(record)
		values = [
			data.get(column) if data.get(column) is not None else _COLUMN_DEFAULTS.get(column)
			for column in ROUND_COLUMNS
		]
		placeholders = ", ".join(f"${idx}" for idx in range(1, len(ROUND_COLUMNS) + 1))
		updates = ", ".join(f"{column} = EXCLUDED.{column}" for column in ROUND_COLUMNS if column != "id")
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			row = await conn.fetchrow(
				f"""
				INSERT INTO rounds ({", ".join(ROUND_COLUMNS)})
				VALUES ({placeholders})
				ON CONFLICT (id) DO UPDATE SET {updates}, updated_at = NOW()
				RETURNING {", ".join(ROUND_COLUMNS)}
				""",
				*values,
			)
		return dict(row)
