"""Great-circle distance helpers (haversine)."""

from __future__ import annotations

import math

EARTH_RADIUS_MILES = 3958.8
EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_MILE = 1609.344


def _central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	if lat1 == lat2 and lng1 == lng2:
		return 0.0
	phi1 = math.radians(lat1)
	phi2 = math.radians(lat2)
	d_phi = math.radians(lat2 - lat1)
	d_lambda = math.radians(lng2 - lng1)
	a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
	# rounding can push a a hair outside [0, 1] for antipodal points
	a = min(1.0, max(0.0, a))
	return 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	"""Distance in miles between two coordinates."""

	return EARTH_RADIUS_MILES * _central_angle(lat1, lng1, lat2, lng2)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	"""Distance in meters between two coordinates."""

	return EARTH_RADIUS_METERS * _central_angle(lat1, lng1, lat2, lng2)


def miles_to_meters(miles: float) -> float:
	return miles * METERS_PER_MILE


def meters_to_miles(meters: float) -> float:
	return meters / METERS_PER_MILE
