"""Geohash helpers and query range computation for round search.

Rounds store a precision-9 geohash next to their coordinates. A radius query
is turned into a handful of half-open key ranges that together cover every
geohash cell touched by the circle's bounding box, so the store only needs a
single-field range predicate.

Edge behavior:
- a box that crosses the antimeridian wraps and takes cells from both sides;
- a box that reaches a pole is clipped to +-90 and takes every longitude column.
"""

from __future__ import annotations

import math
from typing import Iterable

import pygeohash as pgh

from roundsearch.domain.rounds.distance import EARTH_RADIUS_METERS, EARTH_RADIUS_MILES
from roundsearch.domain.rounds.models import Bound, GeoKey

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_BASE32_INDEX = {char: idx for idx, char in enumerate(BASE32)}
BITS_PER_CHAR = 5
MIN_PRECISION = 1
MAX_PRECISION = 12
STORAGE_PRECISION = 9

# Upper bound on cells per query before precision is coarsened
MAX_QUERY_CELLS = 64

# Sorts after every base32 character
KEY_SPACE_END = "~"

_MILES_PER_DEGREE = math.pi * EARTH_RADIUS_MILES / 180.0


def _check_coordinates(latitude: float, longitude: float) -> None:
	if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
		raise ValueError(f"coordinates out of range: ({latitude}, {longitude})")


def _check_geohash(geohash: str) -> str:
	if not geohash:
		raise ValueError("empty geohash")
	lowered = geohash.lower()
	for char in lowered:
		if char not in _BASE32_INDEX:
			raise ValueError(f"invalid geohash character: {char!r}")
	return lowered


def encode(latitude: float, longitude: float, precision: int = STORAGE_PRECISION) -> str:
	"""Encode a coordinate to a geohash string of ``precision`` characters."""

	if not MIN_PRECISION <= precision <= MAX_PRECISION:
		raise ValueError(f"precision must be between {MIN_PRECISION} and {MAX_PRECISION}")
	_check_coordinates(latitude, longitude)
	return pgh.encode(latitude, longitude, precision=precision)


def decode_box(geohash: str) -> tuple[float, float, float, float]:
	"""Return ``(lat_min, lat_max, lng_min, lng_max)`` of a geohash cell."""

	lat, lng, lat_err, lng_err = pgh.decode_exactly(_check_geohash(geohash))
	return lat - lat_err, lat + lat_err, lng - lng_err, lng + lng_err


def decode(geohash: str) -> tuple[float, float]:
	"""Return the ``(latitude, longitude)`` center of a geohash cell.

	``pygeohash.decode`` rounds to the cell's significant digits, which can move
	the point off center, so the exact center is used instead.
	"""

	lat, lng, _, _ = pgh.decode_exactly(_check_geohash(geohash))
	return lat, lng


def cell_size_degrees(precision: int) -> tuple[float, float]:
	"""Cell ``(height, width)`` in degrees at ``precision``."""

	total_bits = precision * BITS_PER_CHAR
	lng_bits = (total_bits + 1) // 2
	lat_bits = total_bits // 2
	return 180.0 / (1 << lat_bits), 360.0 / (1 << lng_bits)


def approximate_cell_size_miles(precision: int) -> tuple[float, float]:
	"""Cell ``(width, height)`` in miles measured at the equator."""

	lat_deg, lng_deg = cell_size_degrees(precision)
	return lng_deg * _MILES_PER_DEGREE, lat_deg * _MILES_PER_DEGREE


def _wrap_longitude(longitude: float) -> float:
	return ((longitude + 180.0) % 360.0) - 180.0


def neighbors(geohash: str) -> list[str]:
	"""The (up to) eight cells surrounding ``geohash`` at the same precision."""

	lat_lo, lat_hi, lng_lo, lng_hi = decode_box(geohash)
	lat_c = (lat_lo + lat_hi) / 2.0
	lng_c = (lng_lo + lng_hi) / 2.0
	height = lat_hi - lat_lo
	width = lng_hi - lng_lo
	result: list[str] = []
	for d_lat, d_lng in (
		(height, 0.0),
		(height, width),
		(0.0, width),
		(-height, width),
		(-height, 0.0),
		(-height, -width),
		(0.0, -width),
		(height, -width),
	):
		lat = lat_c + d_lat
		if lat > 90.0 or lat < -90.0:
			continue
		cell = encode(lat, _wrap_longitude(lng_c + d_lng), len(geohash))
		if cell != geohash and cell not in result:
			result.append(cell)
	return result


def build_geo_key(latitude: float, longitude: float, precision: int = STORAGE_PRECISION) -> GeoKey:
	"""Denormalized location summary written with a round."""

	return GeoKey(lat=latitude, lng=longitude, geohash=encode(latitude, longitude, precision))


def _successor(cell: str) -> str:
	"""Smallest geohash of the same length that sorts after every key prefixed by ``cell``."""

	chars = list(cell)
	for idx in range(len(chars) - 1, -1, -1):
		value = _BASE32_INDEX[chars[idx]]
		if value < len(BASE32) - 1:
			chars[idx] = BASE32[value + 1]
			return "".join(chars[: idx + 1]) + BASE32[0] * (len(chars) - idx - 1)
	return KEY_SPACE_END


def merge_cells(cells: Iterable[str]) -> list[Bound]:
	"""Collapse cells that are consecutive in key order into single ranges."""

	merged: list[Bound] = []
	for cell in sorted(set(cells)):
		bound = Bound(start=cell, end=_successor(cell))
		if merged and merged[-1].end >= bound.start:
			last = merged[-1]
			merged[-1] = Bound(start=last.start, end=max(last.end, bound.end))
		else:
			merged.append(bound)
	return merged


def _search_box(center_lat: float, center_lng: float, radius_meters: float) -> tuple[float, float, float | None]:
	"""Latitude extent and longitude half-width (``None`` = all longitudes)."""

	angular = radius_meters / EARTH_RADIUS_METERS
	d_lat = math.degrees(angular)
	lat_min = center_lat - d_lat
	lat_max = center_lat + d_lat
	if lat_min <= -90.0 or lat_max >= 90.0:
		return max(-90.0, lat_min), min(90.0, lat_max), None
	d_lng = math.degrees(math.asin(math.sin(angular) / math.cos(math.radians(center_lat))))
	if d_lng >= 180.0:
		return lat_min, lat_max, None
	return lat_min, lat_max, d_lng


def _grid_span(
	lat_min: float,
	lat_max: float,
	center_lng: float,
	d_lng: float | None,
	precision: int,
) -> tuple[range, range, int]:
	lat_step, lng_step = cell_size_degrees(precision)
	rows = int(round(180.0 / lat_step))
	cols = int(round(360.0 / lng_step))
	row_lo = min(rows - 1, max(0, int(math.floor((lat_min + 90.0) / lat_step))))
	row_hi = min(rows - 1, max(0, int(math.floor((lat_max + 90.0) / lat_step))))
	if d_lng is None:
		col_range = range(0, cols)
	else:
		col_lo = int(math.floor((center_lng - d_lng + 180.0) / lng_step))
		col_hi = int(math.floor((center_lng + d_lng + 180.0) / lng_step))
		if col_hi - col_lo + 1 >= cols:
			col_range = range(0, cols)
		else:
			col_range = range(col_lo, col_hi + 1)
	return range(row_lo, row_hi + 1), col_range, cols


def covering_cells(center_lat: float, center_lng: float, radius_meters: float, precision: int) -> tuple[list[str], int]:
	"""Cells intersecting the circle's bounding box and the precision actually used."""

	lat_min, lat_max, d_lng = _search_box(center_lat, center_lng, radius_meters)
	precision = max(MIN_PRECISION, min(MAX_PRECISION, precision))
	while True:
		rows, col_range, cols = _grid_span(lat_min, lat_max, center_lng, d_lng, precision)
		if len(rows) * len(col_range) <= MAX_QUERY_CELLS or precision == MIN_PRECISION:
			break
		precision -= 1

	lat_step, lng_step = cell_size_degrees(precision)
	cells: set[str] = set()
	for row in rows:
		lat = -90.0 + (row + 0.5) * lat_step
		for col in col_range:
			lng = -180.0 + ((col % cols) + 0.5) * lng_step
			cells.add(encode(lat, lng, precision))
	return sorted(cells), precision


def query_bounds(center_lat: float, center_lng: float, radius_meters: float, precision: int) -> list[Bound]:
	"""Key ranges whose union covers the search circle at ``precision``.

	Precision may be coarsened to stay under ``MAX_QUERY_CELLS``; the one
	actually used is ``Bound.precision`` of any returned range.
	"""

	if not math.isfinite(radius_meters) or radius_meters <= 0:
		return []
	if not (-90.0 <= center_lat <= 90.0) or not (-180.0 <= center_lng <= 180.0):
		return []
	cells, _ = covering_cells(center_lat, center_lng, radius_meters, precision)
	return merge_cells(cells)
