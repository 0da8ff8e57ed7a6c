from datetime import datetime, timedelta, timezone

import pytest

from roundsearch.domain.rounds import policy, ranking, refine, schemas
from roundsearch.domain.rounds.distance import haversine_miles
from roundsearch.domain.rounds.models import GeoKey, RoundCandidate

CENTER = (37.3382, -121.8863)
BASE = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)


def _candidate(round_id, *, lat=37.34, lng=-121.89, start=BASE, tee=None, **overrides):
	values = {
		"round_id": round_id,
		"host_uid": "host",
		"title": round_id,
		"status": "open",
		"visibility": "public",
		"start_time": start,
		"chosen_tee_time": tee,
		"geo": GeoKey(lat=lat, lng=lng, geohash="9q9k6"),
	}
	values.update(overrides)
	return RoundCandidate(**values)


def _filter(**overrides):
	payload = {
		"lat": CENTER[0],
		"lng": CENTER[1],
		"radius_miles": 25.0,
		"start_time_min": BASE,
		"start_time_max": BASE + timedelta(days=7),
	}
	payload.update(overrides)
	return schemas.RoundsSearchFilter(**payload)


def test_distance_pass_includes_exact_boundary():
	edge = _candidate("edge", lat=37.5, lng=-121.7)
	radius = haversine_miles(CENTER[0], CENTER[1], 37.5, -121.7)
	kept = refine.distance_pass([edge], center_lat=CENTER[0], center_lng=CENTER[1], radius_miles=radius)
	assert kept == [edge]
	assert kept[0].distance_miles == radius

	dropped = refine.distance_pass(
		[_candidate("edge", lat=37.5, lng=-121.7)],
		center_lat=CENTER[0],
		center_lng=CENTER[1],
		radius_miles=radius - 1e-6,
	)
	assert dropped == []


def test_distance_pass_drops_rounds_without_location():
	missing = _candidate("nowhere", geo=None)
	assert refine.distance_pass([missing], center_lat=0.0, center_lng=0.0, radius_miles=100.0) == []


def test_date_pass_is_half_open():
	filter_ = _filter()
	at_min = _candidate("min", start=BASE)
	at_max = _candidate("max", start=BASE + timedelta(days=7))
	tee_only = _candidate("tee", start=None, tee=BASE + timedelta(days=1))
	undated = _candidate("undated", start=None)
	kept = refine.date_pass([at_min, at_max, tee_only, undated], filter_)
	assert [c.round_id for c in kept] == ["min", "tee"]


def test_categorical_pass_defaults_to_public_open_with_spots():
	rounds = [
		_candidate("ok"),
		_candidate("closed", status="closed"),
		_candidate("friends", visibility="friends"),
		_candidate("full", max_players=4, accepted_count=4),
	]
	kept = refine.categorical_pass(rounds, _filter())
	assert [c.round_id for c in kept] == ["ok"]


def test_categorical_pass_honours_explicit_filters():
	rounds = [
		_candidate("mine", host_uid="me", visibility="friends", max_players=2, accepted_count=2),
		_candidate("theirs", host_uid="them", visibility="friends"),
	]
	filter_ = _filter(
		visibility=schemas.RoundVisibility.FRIENDS,
		host_uid="me",
		exclude_full=False,
		status=None,
	)
	assert [c.round_id for c in refine.categorical_pass(rounds, filter_)] == ["mine"]


def test_sort_orders_by_date_then_id_with_undated_last():
	rounds = [
		_candidate("c", start=BASE + timedelta(hours=1)),
		_candidate("b", start=BASE),
		_candidate("z", start=None),
		_candidate("a", start=BASE),
		_candidate("t", start=None, tee=BASE),
	]
	assert [c.round_id for c in ranking.sort_candidates(rounds)] == ["a", "b", "t", "c", "z"]


def test_paginate_walks_every_item_once():
	rounds = [_candidate(f"r{idx:02d}", start=BASE + timedelta(minutes=idx % 3)) for idx in range(7)]
	expected = [c.round_id for c in ranking.sort_candidates(rounds)]

	seen = []
	cursor = None
	for _ in range(10):
		page = ranking.paginate(rounds, page_size=3, cursor=cursor)
		seen.extend(c.round_id for c in page.items)
		cursor = page.next_cursor
		if cursor is None:
			break
	assert seen == expected


def test_paginate_last_full_page_has_no_cursor():
	rounds = [_candidate(f"r{idx}") for idx in range(3)]
	page = ranking.paginate(rounds, page_size=3)
	assert len(page.items) == 3
	assert page.next_cursor is None


def test_cursor_round_trip():
	cursor = ranking.PageCursor(last_time=BASE, last_id="round-7")
	decoded = ranking.decode_cursor(ranking.encode_cursor(cursor))
	assert decoded == cursor


@pytest.mark.parametrize("value", ["!!!", "bm90LWpzb24", "eyJ0IjogMX0="])
def test_bad_cursor_is_a_validation_error(value):
	with pytest.raises(policy.SearchValidationError) as excinfo:
		ranking.decode_cursor(value)
	assert excinfo.value.detail == "bad_cursor"
