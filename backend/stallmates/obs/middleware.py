"""Per-request metrics and access logs."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from stallmates.obs import logging as obs_logging
from stallmates.obs import metrics

REQUEST_ID_HEADER = "X-Request-Id"

access_logger = obs_logging.get_logger("stallmates.http")


def route_label(request: Request) -> str:
	"""Templated path (``/posts/{post_id}``) so metric labels stay bounded."""
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class RequestObservabilityMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		request.state.request_id = request_id
		started = time.perf_counter()
		status_code = 500
		with obs_logging.log_context(
			request_id=request_id,
			route=request.url.path,
			user_id=request.headers.get("X-User-Id"),
			session_id=request.headers.get("X-Session-Id"),
		):
			try:
				response = await call_next(request)
				status_code = response.status_code
			finally:
				elapsed = time.perf_counter() - started
				route = route_label(request)
				metrics.observe_request(route, request.method, status_code, elapsed)
				access_logger.info(
					"%s %s -> %s",
					request.method,
					route,
					status_code,
					extra={"route_template": route, "status": status_code, "latency_ms": round(elapsed * 1000, 2)},
				)
		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response


def install(app: FastAPI) -> None:
	app.add_middleware(RequestObservabilityMiddleware)
