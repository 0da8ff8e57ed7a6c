import math
import random

import pytest

from roundsearch.domain.rounds import geohash
from roundsearch.domain.rounds.distance import haversine_miles, miles_to_meters

SAN_JOSE = (37.3382, -121.8863)


def _covered(bounds, point_hash: str) -> bool:
	return any(bound.contains(point_hash) for bound in bounds)


@pytest.mark.parametrize(
	"lat,lng,precision,expected",
	[
		(42.6, -5.6, 5, "ezs42"),
		(57.64911, 10.40744, 11, "u4pruydqqvj"),
	],
)
def test_encode_known_values(lat, lng, precision, expected):
	assert geohash.encode(lat, lng, precision) == expected


def test_encode_is_prefix_stable():
	full = geohash.encode(*SAN_JOSE)
	assert len(full) == geohash.STORAGE_PRECISION
	for precision in range(1, geohash.STORAGE_PRECISION):
		assert geohash.encode(*SAN_JOSE, precision) == full[:precision]


def test_decode_box_contains_encoded_point():
	cell = geohash.encode(*SAN_JOSE, 7)
	lat_lo, lat_hi, lng_lo, lng_hi = geohash.decode_box(cell)
	assert lat_lo <= SAN_JOSE[0] <= lat_hi
	assert lng_lo <= SAN_JOSE[1] <= lng_hi
	center_lat, center_lng = geohash.decode(cell)
	lat_step, lng_step = geohash.cell_size_degrees(7)
	assert abs(center_lat - SAN_JOSE[0]) <= lat_step / 2
	assert abs(center_lng - SAN_JOSE[1]) <= lng_step / 2


@pytest.mark.parametrize(
	"lat,lng,precision",
	[(91.0, 0.0, 5), (0.0, -180.5, 5), (0.0, 0.0, 0), (0.0, 0.0, 13)],
)
def test_encode_rejects_bad_input(lat, lng, precision):
	with pytest.raises(ValueError):
		geohash.encode(lat, lng, precision)


def test_decode_rejects_invalid_characters():
	with pytest.raises(ValueError):
		geohash.decode_box("9qa")
	with pytest.raises(ValueError):
		geohash.decode_box("")


def test_neighbors_surround_interior_cell():
	cell = geohash.encode(*SAN_JOSE, 5)
	around = geohash.neighbors(cell)
	assert len(around) == 8
	assert cell not in around
	assert all(len(item) == 5 for item in around)


def test_neighbors_skip_beyond_pole_and_wrap_longitude():
	polar = geohash.encode(89.99, 0.0, 3)
	assert len(geohash.neighbors(polar)) < 8

	east_edge = geohash.encode(0.1, 179.9, 4)
	west_edge = geohash.encode(0.1, -179.9, 4)
	assert west_edge in geohash.neighbors(east_edge)


def test_cell_sizes_shrink_with_precision():
	widths = [geohash.approximate_cell_size_miles(p)[0] for p in range(1, 10)]
	assert widths == sorted(widths, reverse=True)
	width, height = geohash.approximate_cell_size_miles(5)
	assert 2.5 < width < 3.5
	assert 2.5 < height < 3.5


def test_build_geo_key_uses_storage_precision():
	key = geohash.build_geo_key(*SAN_JOSE)
	assert key.lat == SAN_JOSE[0]
	assert key.geohash == geohash.encode(*SAN_JOSE, 9)


def test_merge_cells_joins_consecutive_cells():
	bounds = geohash.merge_cells(["9r", "9q", "9q"])
	assert len(bounds) == 1
	assert bounds[0].start == "9q"
	assert bounds[0].end == "9s"


def test_merge_cells_keeps_gaps_and_carries():
	bounds = geohash.merge_cells(["9q", "9z", "b0", "zz"])
	assert [(b.start, b.end) for b in bounds] == [
		("9q", "9r"),
		("9z", "b1"),
		("zz", geohash.KEY_SPACE_END),
	]


def test_bound_is_half_open():
	(bound,) = geohash.merge_cells(["9q"])
	assert bound.contains("9q")
	assert bound.contains("9qzzzzzzz")
	assert not bound.contains("9r")
	assert not bound.contains("9p")


def test_query_bounds_cover_points_inside_radius():
	rng = random.Random(7)
	radius_miles = 25.0
	bounds = geohash.query_bounds(*SAN_JOSE, miles_to_meters(radius_miles), 3)
	assert 1 <= len(bounds) <= 4
	checked = 0
	while checked < 300:
		lat = SAN_JOSE[0] + rng.uniform(-0.4, 0.4)
		lng = SAN_JOSE[1] + rng.uniform(-0.5, 0.5)
		if haversine_miles(SAN_JOSE[0], SAN_JOSE[1], lat, lng) > radius_miles:
			continue
		assert _covered(bounds, geohash.encode(lat, lng))
		checked += 1


@pytest.mark.parametrize("radius_miles,precision", [(0.9, 6), (4.0, 5), (40.0, 4), (100.0, 3)])
def test_query_bounds_cover_circle_edge(radius_miles, precision):
	bounds = geohash.query_bounds(*SAN_JOSE, miles_to_meters(radius_miles), precision)
	angular = radius_miles / 3958.8 * 0.999
	for step in range(36):
		bearing = math.radians(step * 10)
		lat1 = math.radians(SAN_JOSE[0])
		lng1 = math.radians(SAN_JOSE[1])
		lat2 = math.asin(math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(bearing))
		lng2 = lng1 + math.atan2(
			math.sin(bearing) * math.sin(angular) * math.cos(lat1),
			math.cos(angular) - math.sin(lat1) * math.sin(lat2),
		)
		point = geohash.encode(math.degrees(lat2), math.degrees(lng2))
		assert _covered(bounds, point)


def test_query_bounds_wrap_antimeridian():
	bounds = geohash.query_bounds(0.0, 179.95, miles_to_meters(20.0), 4)
	east = geohash.encode(0.0, 179.99)
	west = geohash.encode(0.0, -179.9)
	assert haversine_miles(0.0, 179.95, 0.0, -179.9) <= 20.0
	assert _covered(bounds, east)
	assert _covered(bounds, west)


def test_query_bounds_cross_the_pole():
	bounds = geohash.query_bounds(89.95, 10.0, miles_to_meters(30.0), 3)
	across = geohash.encode(89.95, -170.0)
	assert haversine_miles(89.95, 10.0, 89.95, -170.0) <= 30.0
	assert _covered(bounds, across)
	assert _covered(bounds, geohash.encode(90.0, 0.0))


def test_covering_cells_coarsens_large_requests():
	cells, used = geohash.covering_cells(*SAN_JOSE, miles_to_meters(100.0), 9)
	assert used < 9
	assert 0 < len(cells) <= geohash.MAX_QUERY_CELLS


@pytest.mark.parametrize(
	"lat,lng,radius_m",
	[
		(37.0, -122.0, 0.0),
		(37.0, -122.0, -5.0),
		(37.0, -122.0, float("nan")),
		(95.0, -122.0, 1000.0),
		(37.0, 200.0, 1000.0),
	],
)
def test_query_bounds_degenerate_inputs(lat, lng, radius_m):
	assert geohash.query_bounds(lat, lng, radius_m, 5) == []


def test_query_bounds_report_the_precision_used():
	_, used = geohash.covering_cells(*SAN_JOSE, miles_to_meters(100.0), 9)
	bounds = geohash.query_bounds(*SAN_JOSE, miles_to_meters(100.0), 9)
	assert bounds
	assert {bound.precision for bound in bounds} == {used}


def test_decode_accepts_upper_case():
	cell = geohash.encode(*SAN_JOSE, 6)
	assert geohash.decode_box(cell.upper()) == geohash.decode_box(cell)
