import json
import logging

from roundsearch.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("roundsearch.test", logging.INFO, __file__, 1, "rounds.search mode=%s", ("radius",), None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_emits_json_with_request_context():
	tokens = obs_logging.bind_context(request_id="req-1", route="/rounds/search")
	try:
		payload = json.loads(obs_logging.JSONLogFormatter().format(_record(latency_ms=12.5)))
	finally:
		obs_logging.reset_context(tokens)
	assert payload["msg"] == "rounds.search mode=radius"
	assert payload["request_id"] == "req-1"
	assert payload["route"] == "/rounds/search"
	assert payload["latency_ms"] == 12.5


def test_formatter_redacts_locations_and_cursors():
	payload = json.loads(
		obs_logging.JSONLogFormatter().format(_record(lat=37.3, lng=-121.9, cursor="abc", geohash="9q9k"))
	)
	assert payload["lat"] == "[redacted]"
	assert payload["lng"] == "[redacted]"
	assert payload["cursor"] == "[redacted]"
	assert payload["geohash"] == "[redacted]"
	assert "request_id" not in payload
