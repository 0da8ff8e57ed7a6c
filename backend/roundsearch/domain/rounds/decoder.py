"""Turns raw store rows into round candidates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from roundsearch.domain.rounds import models, schemas

_VISIBILITIES = {item.value for item in schemas.RoundVisibility}
_STATUSES = {item.value for item in schemas.RoundStatus}


class RoundDecodeError(ValueError):
	"""Raised when a stored round is missing required fields."""


def _required_str(row: Mapping[str, Any], key: str) -> str:
	value = row.get(key)
	if value is None or str(value).strip() == "":
		raise RoundDecodeError(f"missing_{key}")
	return str(value)


def _parse_datetime(value: Any, key: str) -> Optional[datetime]:
	if value is None:
		return None
	if isinstance(value, str):
		try:
			value = datetime.fromisoformat(value)
		except ValueError as exc:
			raise RoundDecodeError(f"bad_{key}") from exc
	if not isinstance(value, datetime):
		raise RoundDecodeError(f"bad_{key}")
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


def _parse_geo(row: Mapping[str, Any]) -> Optional[models.GeoKey]:
	lat = row.get("geo_lat")
	lng = row.get("geo_lng")
	geohash = row.get("geohash")
	if isinstance(lat, bool) or isinstance(lng, bool):
		return None
	if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
		return None
	if not isinstance(geohash, str) or not geohash:
		return None
	return models.GeoKey(lat=float(lat), lng=float(lng), geohash=geohash)


def _int_or(value: Any, default: int) -> int:
	if value is None:
		return default
	try:
		return int(value)
	except (TypeError, ValueError) as exc:
		raise RoundDecodeError("bad_count") from exc


def decode_round(row: Mapping[str, Any]) -> models.RoundCandidate:
	round_id = _required_str(row, "id")
	host_uid = _required_str(row, "host_uid")
	title = _required_str(row, "title")
	visibility = _required_str(row, "visibility")
	if visibility not in _VISIBILITIES:
		raise RoundDecodeError("bad_visibility")
	status = _required_str(row, "status")
	if status not in _STATUSES:
		raise RoundDecodeError("bad_status")
	return models.RoundCandidate(
		round_id=round_id,
		host_uid=host_uid,
		title=title,
		status=status,
		visibility=visibility,
		start_time=_parse_datetime(row.get("start_time"), "start_time"),
		chosen_tee_time=_parse_datetime(row.get("chosen_tee_time"), "chosen_tee_time"),
		geo=_parse_geo(row),
		max_players=_int_or(row.get("max_players"), 4),
		accepted_count=_int_or(row.get("accepted_count"), 1),
		request_count=_int_or(row.get("request_count"), 0),
	)
