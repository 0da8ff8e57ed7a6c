"""ASGI middleware for request metrics and the search access log."""

from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from roundsearch.obs import logging as obs_logging
from roundsearch.obs import metrics
from roundsearch.settings import settings

# Health checks and metric scrapes are counted but not access-logged
QUIET_ROUTES = frozenset({"/health/live", "/health/ready", "/metrics"})


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	if route and getattr(route, "path", None):
		return route.path  # type: ignore[return-value]
	return request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	"""Record request metrics and one access log line per API request.

	``RequestIdMiddleware`` runs outside this one and owns the request id; it is
	only read here. The search endpoint leaves the mode it ran in on
	``request.state.search_mode`` so the access line can carry it.
	"""

	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._logger = obs_logging.get_logger("roundsearch.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not settings.obs_enabled or not self._enabled:
			return await call_next(request)

		client = request.client
		tokens = obs_logging.bind_context(
			request_id=getattr(request.state, "request_id", None),
			route=request.url.path,
			client_ip=client.host if client else None,
		)
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
			return response
		except Exception:
			self._logger.exception("http_request_error", extra={"method": request.method})
			raise
		finally:
			elapsed_seconds = time.perf_counter() - start
			# Routing has run by now, so the template is known
			route_template = _route_template(request)
			metrics.observe_request(route_template, request.method, status_code, elapsed_seconds)
			if route_template not in QUIET_ROUTES:
				self._access_log(request, status_code, elapsed_seconds)
			obs_logging.reset_context(tokens)

	def _access_log(self, request: Request, status_code: int, elapsed_seconds: float) -> None:
		extra: dict[str, object] = {
			"status": status_code,
			"method": request.method,
			"latency_ms": round(elapsed_seconds * 1000, 3),
		}
		search_mode = getattr(request.state, "search_mode", None)
		if search_mode:
			extra["search_mode"] = search_mode
		self._logger.info("http_request", extra=extra)


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
