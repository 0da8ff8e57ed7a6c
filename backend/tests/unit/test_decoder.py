from datetime import datetime, timezone

import pytest

from roundsearch.domain.rounds.decoder import RoundDecodeError, decode_round


def _row(**overrides):
	row = {
		"id": "round-1",
		"host_uid": "host-1",
		"title": "Saturday scramble",
		"visibility": "public",
		"status": "open",
		"start_time": datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc),
		"chosen_tee_time": None,
		"geo_lat": 37.3382,
		"geo_lng": -121.8863,
		"geohash": "9q9k6ny3k",
		"max_players": 4,
		"accepted_count": 2,
		"request_count": 1,
	}
	row.update(overrides)
	return row


def test_decode_full_row():
	candidate = decode_round(_row())
	assert candidate.round_id == "round-1"
	assert candidate.geo is not None
	assert candidate.geo.geohash == "9q9k6ny3k"
	assert candidate.spots_remaining == 2
	assert not candidate.is_full
	assert candidate.effective_date == datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)


def test_decode_applies_defaults_and_tee_time_fallback():
	row = _row(start_time=None, chosen_tee_time="2026-10-18T08:30:00", max_players=None, accepted_count=None)
	del row["request_count"]
	candidate = decode_round(row)
	assert candidate.effective_date == datetime(2026, 10, 18, 8, 30, tzinfo=timezone.utc)
	assert candidate.max_players == 4
	assert candidate.accepted_count == 1
	assert candidate.request_count == 0


def test_decode_without_location_keeps_round_without_geo():
	candidate = decode_round(_row(geo_lat=None, geohash=None))
	assert candidate.geo is None


def test_decode_converts_offsets_to_utc():
	candidate = decode_round(_row(start_time="2026-10-17T08:00:00-07:00"))
	assert candidate.start_time == datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
	"overrides",
	[
		{"id": None},
		{"host_uid": ""},
		{"title": "   "},
		{"visibility": "secret"},
		{"status": None},
		{"status": "archived"},
		{"start_time": "not-a-date"},
		{"chosen_tee_time": 12345},
		{"max_players": "four"},
	],
)
def test_decode_rejects_malformed_rows(overrides):
	with pytest.raises(RoundDecodeError):
		decode_round(_row(**overrides))


def test_full_round_has_no_spots():
	candidate = decode_round(_row(accepted_count=5, max_players=4))
	assert candidate.is_full
	assert candidate.spots_remaining == 0
