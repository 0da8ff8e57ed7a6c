"""Client-side filter passes applied to merged candidates.

Passes run in a fixed order (distance, date, categorical); each returns the
survivors so the orchestrator can report per-stage counts.
"""

from __future__ import annotations

from typing import Iterable

from roundsearch.domain.rounds import models, schemas
from roundsearch.domain.rounds.distance import haversine_miles


def distance_pass(
	candidates: Iterable[models.RoundCandidate],
	*,
	center_lat: float,
	center_lng: float,
	radius_miles: float,
) -> list[models.RoundCandidate]:
	"""Keep rounds within ``radius_miles`` (inclusive) and attach their distance."""

	survivors: list[models.RoundCandidate] = []
	for candidate in candidates:
		if candidate.geo is None:
			continue
		distance = haversine_miles(center_lat, center_lng, candidate.geo.lat, candidate.geo.lng)
		if distance > radius_miles:
			continue
		candidate.distance_miles = distance
		survivors.append(candidate)
	return survivors


def date_pass(
	candidates: Iterable[models.RoundCandidate],
	filter_: schemas.RoundsSearchFilter,
) -> list[models.RoundCandidate]:
	survivors: list[models.RoundCandidate] = []
	for candidate in candidates:
		effective = candidate.effective_date
		if effective is None:
			continue
		if filter_.start_time_min <= effective < filter_.start_time_max:
			survivors.append(candidate)
	return survivors


def categorical_pass(
	candidates: Iterable[models.RoundCandidate],
	filter_: schemas.RoundsSearchFilter,
) -> list[models.RoundCandidate]:
	status = filter_.status.value if filter_.status is not None else None
	visibility = filter_.effective_visibility().value
	survivors: list[models.RoundCandidate] = []
	for candidate in candidates:
		if status is not None and candidate.status != status:
			continue
		if candidate.visibility != visibility:
			continue
		if filter_.host_uid is not None and candidate.host_uid != filter_.host_uid:
			continue
		if filter_.exclude_full and candidate.is_full:
			continue
		survivors.append(candidate)
	return survivors


def exclude_full_pass(
	candidates: Iterable[models.RoundCandidate],
	filter_: schemas.RoundsSearchFilter,
) -> list[models.RoundCandidate]:
	"""Discovery mode pushes status/visibility to the store; only fullness is left."""

	if not filter_.exclude_full:
		return list(candidates)
	return [candidate for candidate in candidates if not candidate.is_full]
