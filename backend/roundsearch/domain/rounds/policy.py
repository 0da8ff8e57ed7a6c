"""Limits, precision policy and request validation for round search."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from roundsearch.domain.rounds import schemas
from roundsearch.settings import settings

# (exclusive max radius in miles, geohash precision). Cells stay small enough
# that a per-bound fetch is not swamped by rounds outside the circle.
PRECISION_BANDS: tuple[tuple[float, int], ...] = (
	(1.0, 6),
	(5.0, 5),
	(50.0, 4),
	(150.0, 3),
)
COARSEST_PRECISION = 2


@dataclass(slots=True)
class SearchValidationError(Exception):
	detail: str
	status_code: int = 400

	def __str__(self) -> str:  # pragma: no cover - debugging aid
		return self.detail


@dataclass(slots=True, frozen=True)
class SearchLimits:
	max_radius_miles: float = 100.0
	max_date_window_days: int = 30
	per_bound_limit: int = 200
	max_candidates_total: int = 2000
	page_size: int = 30
	discovery_fetch_limit: int = 200

	@classmethod
	def from_settings(cls) -> "SearchLimits":
		return cls(
			max_radius_miles=settings.rounds_max_radius_miles,
			max_date_window_days=settings.rounds_max_date_window_days,
			per_bound_limit=settings.rounds_per_bound_limit,
			max_candidates_total=settings.rounds_max_candidates_total,
			page_size=settings.rounds_page_size,
			discovery_fetch_limit=settings.rounds_discovery_fetch_limit,
		)


def query_precision(radius_miles: float) -> int:
	"""Geohash precision for a radius; larger radii get coarser cells."""

	for max_radius, precision in PRECISION_BANDS:
		if radius_miles < max_radius:
			return precision
	return COARSEST_PRECISION


def validate_window(filter_: schemas.RoundsSearchFilter, limits: SearchLimits) -> None:
	if filter_.start_time_max <= filter_.start_time_min:
		raise SearchValidationError("date_window_invalid")
	if filter_.start_time_max - filter_.start_time_min > timedelta(days=limits.max_date_window_days):
		raise SearchValidationError("date_window_too_large")


def validate_radius_filter(filter_: schemas.RoundsSearchFilter, limits: SearchLimits) -> None:
	"""Checks run before any store access in radius mode."""

	if not math.isfinite(filter_.lat) or not math.isfinite(filter_.lng):
		raise SearchValidationError("invalid_coordinates")
	if not (-90.0 <= filter_.lat <= 90.0) or not (-180.0 <= filter_.lng <= 180.0):
		raise SearchValidationError("invalid_coordinates")
	radius = filter_.radius_miles or 0.0
	if not math.isfinite(radius) or radius < 0:
		raise SearchValidationError("invalid_radius")
	if radius > limits.max_radius_miles:
		raise SearchValidationError("radius_too_large")
	validate_window(filter_, limits)


class DateRangeOption(str, Enum):
	"""Preset date windows offered by the client filter bar."""

	TODAY = "today"
	THIS_WEEKEND = "this_weekend"
	NEXT_7 = "next7"
	NEXT_30 = "next30"

	def window(self, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
		now = now or datetime.now(timezone.utc)
		today = now.replace(hour=0, minute=0, second=0, microsecond=0)
		if self is DateRangeOption.TODAY:
			return today, today + timedelta(days=1)
		if self is DateRangeOption.THIS_WEEKEND:
			weekday = today.weekday()
			start = today if weekday >= 5 else today + timedelta(days=5 - weekday)
			return start, today + timedelta(days=7 - weekday)
		if self is DateRangeOption.NEXT_7:
			return today, today + timedelta(days=7)
		return today, today + timedelta(days=30)
