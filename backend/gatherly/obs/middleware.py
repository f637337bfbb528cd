"""Request instrumentation: Prometheus timings plus one access log line per request."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from gatherly.obs import logging as obs_logging
from gatherly.obs import metrics
from gatherly.settings import settings

_ACCESS_LOG = logging.getLogger("gatherly.http")

REQUEST_ID_HEADER = "X-Request-Id"

# Probes and the scrape endpoint would drown the access log.
_UNLOGGED_PATHS = frozenset({"/health", "/health/ready", "/metrics"})


def route_label(request: Request) -> str:
	"""Return the matched route template so metric labels stay bounded."""
	route = request.scope.get("route")
	path = getattr(route, "path", None)
	return path or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not settings.obs_enabled:
			return await call_next(request)

		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		started = time.perf_counter()
		with obs_logging.request_context(request_id=request_id, user_id=request.headers.get("X-User-Id")):
			try:
				response = await call_next(request)
			except Exception:
				elapsed = time.perf_counter() - started
				metrics.observe_request(route_label(request), request.method, 500, elapsed)
				_ACCESS_LOG.exception("http.unhandled_error", extra={"method": request.method, "path": request.url.path})
				raise
			elapsed = time.perf_counter() - started
			route = route_label(request)
			metrics.observe_request(route, request.method, response.status_code, elapsed)
			if request.url.path not in _UNLOGGED_PATHS:
				_ACCESS_LOG.info(
					"http.request",
					extra={
						"route": route,
						"method": request.method,
						"status": response.status_code,
						"latency_ms": round(elapsed * 1000, 3),
					},
				)
		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response


def install(app: FastAPI) -> None:
	app.add_middleware(ObservabilityMiddleware)
