"""Domain models backing round search results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# Sort sentinel for rounds without any scheduled time
FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(slots=True, frozen=True)
class GeoKey:
	"""Denormalized location summary stored alongside each round."""

	lat: float
	lng: float
	geohash: str


@dataclass(slots=True, frozen=True)
class Bound:
	"""Half-open geohash key range ``[start, end)``."""

	start: str
	end: str

	def contains(self, geohash: str) -> bool:
		return self.start <= geohash < self.end

	@property
	def precision(self) -> int:
		"""Cell length the range was built from."""
		return len(self.start)



@dataclass(slots=True)
class RoundCandidate:
	"""Normalized representation of a round returned from the store layer."""

	round_id: str
	host_uid: str
	title: str
	status: str
	visibility: str
	start_time: Optional[datetime] = None
	chosen_tee_time: Optional[datetime] = None
	geo: Optional[GeoKey] = None
	max_players: int = 4
	accepted_count: int = 1
	request_count: int = 0
	distance_miles: Optional[float] = None

	@property
	def effective_date(self) -> Optional[datetime]:
		return self.start_time or self.chosen_tee_time

	@property
	def is_full(self) -> bool:
		return self.accepted_count >= self.max_players

	@property
	def spots_remaining(self) -> int:
		return max(0, self.max_players - self.accepted_count)

	def sort_key(self) -> tuple[datetime, str]:
		return (self.effective_date or FAR_FUTURE, self.round_id)


@dataclass(slots=True)
class FetchResult:
	"""Merged output of the bound queries for one request."""

	candidates: dict[str, RoundCandidate] = field(default_factory=dict)
	fetched: int = 0
	malformed: int = 0
	bounds_queried: int = 0
	truncated: bool = False
