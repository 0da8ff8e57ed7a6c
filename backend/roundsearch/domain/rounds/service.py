"""Service layer for round search (radius and discovery modes)."""

from __future__ import annotations

import logging
import time
from typing import Iterable, Mapping, Optional

from roundsearch.domain.rounds import executor, geohash, models, policy, ranking, refine, schemas
from roundsearch.domain.rounds.distance import miles_to_meters
from roundsearch.domain.rounds.store import MemoryRoundStore, PostgresRoundStore, RoundStore, row_effective_date
from roundsearch.infra.postgres import get_pool
from roundsearch.obs import metrics as obs_metrics
from roundsearch.settings import settings

logger = logging.getLogger(__name__)

_MEMORY = MemoryRoundStore()


def _to_result(candidate: models.RoundCandidate) -> schemas.RoundResult:
	return schemas.RoundResult(
		id=candidate.round_id,
		host_uid=candidate.host_uid,
		title=candidate.title,
		status=candidate.status,
		visibility=candidate.visibility,
		start_time=candidate.start_time,
		chosen_tee_time=candidate.chosen_tee_time,
		lat=candidate.geo.lat if candidate.geo else None,
		lng=candidate.geo.lng if candidate.geo else None,
		max_players=max(0, candidate.max_players),
		accepted_count=max(0, candidate.accepted_count),
		spots_remaining=candidate.spots_remaining,
		distance_miles=round(candidate.distance_miles, 3) if candidate.distance_miles is not None else None,
	)


def _elapsed_ms(start: float) -> int:
	return int((time.perf_counter() - start) * 1000)


class RoundsSearchService:
	def __init__(self, store: Optional[RoundStore] = None, limits: Optional[policy.SearchLimits] = None) -> None:
		self._store = store
		self._limits = limits

	@property
	def limits(self) -> policy.SearchLimits:
		if self._limits is None:
			self._limits = policy.SearchLimits.from_settings()
		return self._limits

	async def _store_or_default(self) -> RoundStore:
		if self._store is not None:
			return self._store
		if settings.uses_memory_store():
			return _MEMORY
		self._store = PostgresRoundStore(await get_pool())
		return self._store

	async def search(
		self,
		filter_: schemas.RoundsSearchFilter,
		cursor: Optional[str] = None,
	) -> schemas.RoundsSearchPage:
		start = time.perf_counter()
		mode = filter_.mode
		try:
			if mode is schemas.SearchMode.RADIUS:
				page = await self._search_radius(filter_, cursor, start)
			else:
				page = await self._search_discovery(filter_, cursor, start)
		except policy.SearchValidationError as exc:
			obs_metrics.inc_search_error(mode.value, "validation")
			logger.info("rounds.search.rejected mode=%s reason=%s", mode.value, exc.detail)
			raise
		except Exception:
			obs_metrics.inc_search_error(mode.value, "store")
			raise
		finally:
			obs_metrics.observe_search_latency(mode.value, time.perf_counter() - start)

		obs_metrics.inc_search_query(mode.value)
		if page.is_truncated:
			obs_metrics.inc_search_truncated(mode.value)
		diag = page.diagnostics
		logger.info(
			"rounds.search mode=%s precision=%d bounds=%d fetched=%d results=%d truncated=%s",
			mode.value,
			diag.precision,
			diag.bounds_queried,
			diag.candidates_fetched,
			diag.results_count,
			page.is_truncated,
		)
		return page

	async def _search_radius(
		self,
		filter_: schemas.RoundsSearchFilter,
		cursor: Optional[str],
		start: float,
	) -> schemas.RoundsSearchPage:
		limits = self.limits
		policy.validate_radius_filter(filter_, limits)
		page_cursor = ranking.decode_cursor(cursor) if cursor else None
		radius_miles = float(filter_.radius_miles or 0.0)

		requested = policy.query_precision(radius_miles)
		bounds = geohash.query_bounds(filter_.lat, filter_.lng, miles_to_meters(radius_miles), requested)
		precision = bounds[0].precision if bounds else requested
		if not bounds:
			return schemas.RoundsSearchPage(
				items=[],
				diagnostics=schemas.SearchDiagnostics(
					mode=schemas.SearchMode.RADIUS,
					precision=precision,
					duration_ms=_elapsed_ms(start),
				),
			)

		store = await self._store_or_default()
		fetched = await executor.fetch_candidates(
			store,
			bounds,
			per_bound_limit=limits.per_bound_limit,
			total_budget=limits.max_candidates_total,
		)
		near = refine.distance_pass(
			fetched.candidates.values(),
			center_lat=filter_.lat,
			center_lng=filter_.lng,
			radius_miles=radius_miles,
		)
		in_window = refine.date_pass(near, filter_)
		matching = refine.categorical_pass(in_window, filter_)
		page = ranking.paginate(matching, page_size=limits.page_size, cursor=page_cursor)

		return schemas.RoundsSearchPage(
			items=[_to_result(candidate) for candidate in page.items],
			next_cursor=ranking.encode_cursor(page.next_cursor) if page.next_cursor else None,
			is_truncated=fetched.truncated,
			diagnostics=schemas.SearchDiagnostics(
				mode=schemas.SearchMode.RADIUS,
				bounds_queried=fetched.bounds_queried,
				candidates_fetched=fetched.fetched,
				malformed_dropped=fetched.malformed,
				after_distance=len(near),
				after_date=len(in_window),
				after_filters=len(matching),
				results_count=len(page.items),
				duration_ms=_elapsed_ms(start),
				precision=precision,
			),
		)

	async def _search_discovery(
		self,
		filter_: schemas.RoundsSearchFilter,
		cursor: Optional[str],
		start: float,
	) -> schemas.RoundsSearchPage:
		limits = self.limits
		policy.validate_window(filter_, limits)
		page_cursor = ranking.decode_cursor(cursor) if cursor else None

		store = await self._store_or_default()
		rows = await store.date_window_query(
			filter_.start_time_min,
			filter_.start_time_max,
			status=filter_.status.value if filter_.status is not None else None,
			visibility=filter_.effective_visibility().value,
			after=page_cursor.key() if page_cursor else None,
			limit=limits.discovery_fetch_limit,
		)
		candidates, dropped = executor.decode_rows(rows)
		matching = refine.exclude_full_pass(candidates, filter_)
		page = ranking.paginate(matching, page_size=limits.page_size, cursor=page_cursor)
		truncated = len(rows) >= limits.discovery_fetch_limit

		next_cursor = page.next_cursor
		if next_cursor is None and truncated:
			# Everything up to the last fetched row has been examined; resume after it.
			last_row = rows[-1]
			last_time = row_effective_date(last_row)
			if last_time is not None:
				next_cursor = ranking.PageCursor(last_time=last_time, last_id=str(last_row.get("id")))

		return schemas.RoundsSearchPage(
			items=[_to_result(candidate) for candidate in page.items],
			next_cursor=ranking.encode_cursor(next_cursor) if next_cursor else None,
			is_truncated=truncated,
			diagnostics=schemas.SearchDiagnostics(
				mode=schemas.SearchMode.DISCOVERY,
				candidates_fetched=len(rows),
				malformed_dropped=dropped,
				after_distance=len(candidates),
				after_date=len(candidates),
				after_filters=len(matching),
				results_count=len(page.items),
				duration_ms=_elapsed_ms(start),
			),
		)


async def seed_memory_store(rows: Iterable[Mapping[str, object]]) -> None:
	await _MEMORY.seed(rows)


async def save_memory_round(record: Mapping[str, object]) -> Mapping[str, object]:
	return await _MEMORY.save_round(record)


async def reset_memory_state() -> None:
	await _MEMORY.reset()
