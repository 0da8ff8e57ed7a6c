"""REST endpoint for round search (radius and discovery)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from roundsearch.domain.rounds import policy, schemas
from roundsearch.domain.rounds.service import RoundsSearchService
from roundsearch.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rounds"])

_service = RoundsSearchService()


def _as_http_error(exc: Exception) -> HTTPException:
	if isinstance(exc, policy.SearchValidationError):
		return HTTPException(status_code=exc.status_code, detail=exc.detail)
	# Anything else came out of the store (asyncpg, socket or timeout errors)
	logger.exception("rounds.search.store_unavailable error=%s", type(exc).__name__)
	return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store_unavailable")


def _resolve_window(
	start_time_min: Optional[datetime],
	start_time_max: Optional[datetime],
	range_: Optional[policy.DateRangeOption],
) -> tuple[datetime, datetime]:
	if start_time_min is not None and start_time_max is not None:
		return start_time_min, start_time_max
	if start_time_min is not None or start_time_max is not None:
		raise policy.SearchValidationError("date_window_invalid")
	return (range_ or policy.DateRangeOption.NEXT_30).window()


def build_filter(
	*,
	lat: Optional[float],
	lng: Optional[float],
	radius_miles: Optional[float],
	start_time_min: Optional[datetime],
	start_time_max: Optional[datetime],
	range_: Optional[policy.DateRangeOption],
	status_: Optional[schemas.RoundStatus],
	visibility: Optional[schemas.RoundVisibility],
	host_uid: Optional[str],
	exclude_full: bool,
	discovery: bool,
) -> schemas.RoundsSearchFilter:
	"""Turn query parameters into a search filter.

	A center without a radius searches the default radius; no center at all
	means discovery.
	"""

	window_start, window_end = _resolve_window(start_time_min, start_time_max, range_)
	has_center = lat is not None and lng is not None
	if radius_miles is None and has_center and not discovery:
		radius_miles = settings.rounds_default_radius_miles
	if not has_center:
		discovery = True
	return schemas.RoundsSearchFilter(
		lat=lat if lat is not None else 0.0,
		lng=lng if lng is not None else 0.0,
		radius_miles=radius_miles,
		start_time_min=window_start,
		start_time_max=window_end,
		status=status_,
		visibility=visibility,
		host_uid=host_uid,
		exclude_full=exclude_full,
		discovery=discovery,
	)


@router.get("/rounds/search", response_model=schemas.RoundsSearchPage)
async def search_rounds_endpoint(
	request: Request,
	lat: Optional[float] = Query(default=None),
	lng: Optional[float] = Query(default=None),
	radius_miles: Optional[float] = Query(default=None),
	start_time_min: Optional[datetime] = Query(default=None),
	start_time_max: Optional[datetime] = Query(default=None),
	range_: Optional[policy.DateRangeOption] = Query(default=None, alias="range"),
	status_: Optional[schemas.RoundStatus] = Query(default=schemas.RoundStatus.OPEN, alias="status"),
	visibility: Optional[schemas.RoundVisibility] = Query(default=None),
	host_uid: Optional[str] = Query(default=None),
	exclude_full: bool = Query(default=True),
	discovery: bool = Query(default=False),
	cursor: Optional[str] = Query(default=None),
) -> schemas.RoundsSearchPage:
	try:
		filter_ = build_filter(
			lat=lat,
			lng=lng,
			radius_miles=radius_miles,
			start_time_min=start_time_min,
			start_time_max=start_time_max,
			range_=range_,
			status_=status_,
			visibility=visibility,
			host_uid=host_uid,
			exclude_full=exclude_full,
			discovery=discovery,
		)
		request.state.search_mode = filter_.mode.value
		return await _service.search(filter_, cursor=cursor)
	except Exception as exc:  # pragma: no cover - FastAPI converts
		raise _as_http_error(exc) from exc
