"""Fan-out of geohash range queries and merging of their results."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from roundsearch.domain.rounds import models
from roundsearch.domain.rounds.decoder import RoundDecodeError, decode_round
from roundsearch.domain.rounds.store import RoundStore, Row
from roundsearch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def decode_rows(rows: Sequence[Row]) -> tuple[list[models.RoundCandidate], int]:
	"""Decode rows, dropping the malformed ones. Returns ``(candidates, dropped)``."""

	candidates: list[models.RoundCandidate] = []
	dropped = 0
	for row in rows:
		try:
			candidates.append(decode_round(row))
		except RoundDecodeError as exc:
			dropped += 1
			logger.debug("rounds.decode_failed id=%s reason=%s", row.get("id"), exc)
	obs_metrics.inc_decode_failures(dropped)
	return candidates, dropped


async def _gather_or_cancel(coros: list) -> list[list[Row]]:
	tasks = [asyncio.ensure_future(coro) for coro in coros]
	try:
		return await asyncio.gather(*tasks)
	except BaseException:
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)
		raise


async def fetch_candidates(
	store: RoundStore,
	bounds: Sequence[models.Bound],
	*,
	per_bound_limit: int,
	total_budget: int,
) -> models.FetchResult:
	"""Query every bound (concurrently, in budget-sized waves) and merge by round id.

	Each wave hands out ``min(per_bound_limit, remaining)`` to pending bounds in
	order until the budget is spoken for. Bounds still pending once the merged
	count reaches ``total_budget`` are skipped and the result is truncated. A
	failing bound query fails the whole fetch.
	"""

	result = models.FetchResult()
	pending = list(bounds)
	while pending:
		remaining = total_budget - len(result.candidates)
		if remaining <= 0:
			break
		wave: list[tuple[models.Bound, int]] = []
		while pending and remaining > 0:
			limit = min(per_bound_limit, remaining)
			wave.append((pending.pop(0), limit))
			remaining -= limit

		batches = await _gather_or_cancel(
			[store.range_query(bound.start, bound.end, limit=limit) for bound, limit in wave]
		)
		result.bounds_queried += len(wave)
		obs_metrics.inc_bound_queries(len(wave))
		for rows in batches:
			result.fetched += len(rows)
			candidates, dropped = decode_rows(rows)
			result.malformed += dropped
			for candidate in candidates:
				result.candidates[candidate.round_id] = candidate

	result.truncated = bool(pending)
	return result
