"""Pydantic schemas for the round search API."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RoundStatus(str, Enum):
	OPEN = "open"
	CLOSED = "closed"
	CANCELED = "canceled"
	COMPLETED = "completed"


class RoundVisibility(str, Enum):
	PUBLIC = "public"
	FRIENDS = "friends"


class SearchMode(str, Enum):
	RADIUS = "radius"
	DISCOVERY = "discovery"


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


class RoundsSearchFilter(BaseModel):
	"""Query intent for a round search.

	``lat``/``lng``/``radius_miles`` are ignored in discovery mode, which is
	selected by ``discovery=True`` or a missing/zero radius.
	"""

	lat: float = 0.0
	lng: float = 0.0
	radius_miles: Optional[float] = None
	start_time_min: datetime
	start_time_max: datetime = Field(..., description="Exclusive upper bound")
	status: Optional[RoundStatus] = RoundStatus.OPEN
	visibility: Optional[RoundVisibility] = Field(default=None, description="Defaults to public when unset")
	host_uid: Optional[str] = None
	exclude_full: bool = True
	discovery: bool = False

	@field_validator("start_time_min", "start_time_max")
	def _normalise_tz(cls, value: datetime) -> datetime:
		return _as_utc(value)

	@property
	def mode(self) -> SearchMode:
		if self.discovery or not self.radius_miles:
			return SearchMode.DISCOVERY
		return SearchMode.RADIUS

	def effective_visibility(self) -> RoundVisibility:
		return self.visibility or RoundVisibility.PUBLIC


class RoundResult(BaseModel):
	id: str
	host_uid: str
	title: str
	status: str
	visibility: str
	start_time: Optional[datetime] = None
	chosen_tee_time: Optional[datetime] = None
	lat: Optional[float] = None
	lng: Optional[float] = None
	max_players: int = Field(..., ge=0)
	accepted_count: int = Field(..., ge=0)
	spots_remaining: int = Field(..., ge=0)
	distance_miles: Optional[float] = Field(default=None, ge=0.0)


class SearchDiagnostics(BaseModel):
	mode: SearchMode
	bounds_queried: int = 0
	candidates_fetched: int = 0
	malformed_dropped: int = 0
	after_distance: int = 0
	after_date: int = 0
	after_filters: int = 0
	results_count: int = 0
	duration_ms: int = 0
	precision: int = 0


class RoundsSearchPage(BaseModel):
	items: list[RoundResult]
	next_cursor: Optional[str] = None
	is_truncated: bool = False
	diagnostics: SearchDiagnostics
