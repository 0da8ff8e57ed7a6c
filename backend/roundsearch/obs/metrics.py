"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"roundsearch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"roundsearch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

ROUNDS_SEARCH_QUERIES = Counter(
	"roundsearch_search_queries_total",
	"Round searches executed",
	["mode"],
)

ROUNDS_SEARCH_LATENCY = Histogram(
	"roundsearch_search_latency_seconds",
	"Round search latency in seconds",
	["mode"],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

ROUNDS_SEARCH_ERRORS = Counter(
	"roundsearch_search_errors_total",
	"Round searches that failed",
	["mode", "kind"],
)

ROUNDS_BOUND_QUERIES = Counter(
	"roundsearch_bound_queries_total",
	"Geohash range queries issued",
)

ROUNDS_SEARCH_TRUNCATED = Counter(
	"roundsearch_search_truncated_total",
	"Round searches that hit the candidate budget or fetch limit",
	["mode"],
)

ROUNDS_DECODE_FAILURES = Counter(
	"roundsearch_decode_failures_total",
	"Stored rounds dropped because they could not be decoded",
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def inc_search_query(mode: str) -> None:
	ROUNDS_SEARCH_QUERIES.labels(mode=mode).inc()


def observe_search_latency(mode: str, latency_seconds: float) -> None:
	ROUNDS_SEARCH_LATENCY.labels(mode=mode).observe(latency_seconds)


def inc_search_error(mode: str, kind: str) -> None:
	ROUNDS_SEARCH_ERRORS.labels(mode=mode, kind=kind).inc()


def inc_bound_queries(count: int = 1) -> None:
	ROUNDS_BOUND_QUERIES.inc(count)


def inc_search_truncated(mode: str) -> None:
	ROUNDS_SEARCH_TRUNCATED.labels(mode=mode).inc()


def inc_decode_failures(count: int = 1) -> None:
	if count > 0:
		ROUNDS_DECODE_FAILURES.inc(count)
