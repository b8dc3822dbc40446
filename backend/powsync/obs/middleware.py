"""Per-request context: request id, logging context, metrics and access log."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from powsync.obs import logging as obs_logging
from powsync.obs import metrics
from powsync.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"

try:  # pragma: no cover - optional dependency
	from opentelemetry import trace
except ImportError:  # pragma: no cover - otel optional
	trace = None  # type: ignore


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


def _traceparent() -> str | None:
	if trace is None:
		return None
	context = trace.get_current_span().get_span_context()
	if not context.is_valid:
		return None
	return f"00-{context.trace_id:032x}-{context.span_id:016x}-01"


def request_id_of(request: Request) -> str:
	"""The id assigned by :class:`RequestContextMiddleware`, or ``"unknown"`` outside it."""
	return getattr(request.state, "request_id", None) or "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
	"""Give every request an id and, when observability is on, time and log it.

	The id comes from the incoming ``X-Request-Id`` header when present and is
	echoed back on the response.
	"""

	def __init__(self, app, *, access_log: bool = True) -> None:
		super().__init__(app)
		self._access_log = access_log
		self._logger = obs_logging.get_logger("powsync.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		request.state.request_id = request_id
		token = obs_logging.bind_context(request_id=request_id, route=_route_template(request))
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception("http_request_error", extra={"method": request.method, "path": request.url.path})
			raise
		finally:
			elapsed = time.perf_counter() - start
			# the route is only resolved once the router has run
			route = _route_template(request)
			if settings.obs_enabled:
				metrics.observe_request(route, request.method, status_code, elapsed)
			obs_logging.reset_context(token)

		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		traceparent = _traceparent()
		if traceparent:
			response.headers.setdefault("traceparent", traceparent)
		if settings.obs_enabled and self._access_log:
			self._logger.info(
				"http_request",
				extra={
					"status": status_code,
					"method": request.method,
					"route": route,
					"request_id": request_id,
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
		return response


def install(app, *, access_log: bool = True) -> None:
	app.add_middleware(RequestContextMiddleware, access_log=access_log)
