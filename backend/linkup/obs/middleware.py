"""ASGI middleware for request ids, metrics and access logs."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from linkup.obs import logging as obs_logging
from linkup.obs import metrics

REQUEST_ID_HEADER = "X-Request-Id"


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	if route and getattr(route, "path", None):
		return route.path  # type: ignore[return-value]
	return request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	"""Bind a request id, time the request and emit one structured log line."""

	def __init__(self, app) -> None:
		super().__init__(app)
		self._logger = obs_logging.get_logger("linkup.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
		request.state.request_id = request_id
		tokens = obs_logging.bind_context(
			request_id=request_id,
			user_id=request.headers.get("X-User-Id"),
		)
		start = time.perf_counter()
		status_code = 500
		response: Optional[Response] = None
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception(
				"http_request_error",
				extra={"method": request.method, "path": request.url.path},
			)
			raise
		finally:
			elapsed_seconds = time.perf_counter() - start
			route_template = _route_template(request)
			metrics.observe_request(route_template, request.method, status_code, elapsed_seconds)
			self._logger.info(
				"http_request",
				extra={
					"status": status_code,
					"method": request.method,
					"latency_ms": round(elapsed_seconds * 1000, 3),
					"route": route_template,
				},
			)
			obs_logging.reset_context(tokens)
		if REQUEST_ID_HEADER not in response.headers:
			response.headers[REQUEST_ID_HEADER] = request_id
		return response


def install(app) -> None:
	app.add_middleware(ObservabilityMiddleware)
