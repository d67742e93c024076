"""Middleware configuration for FastAPI application.

Provides:
- CORS middleware setup
- Request context middleware: request id and timing headers on every
  response, plus start/completion logging when DEBUG is on
"""

import time
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import PROBE_PATHS, get_logger

logger = get_logger("request")

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Request headers worth logging; authorization is masked
LOGGED_HEADERS = (b"user-agent", b"content-type", b"content-length", b"authorization")


def setup_cors_middleware(app: FastAPI) -> None:
    """Configure CORS middleware with settings from config.

    Args:
        app: FastAPI application instance
    """
    logger.info(
        "CORS configuration",
        environment=settings.ENVIRONMENT,
        origins=settings.CORS_ORIGINS,
        credentials=settings.CORS_CREDENTIALS,
        methods=settings.CORS_METHODS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
        expose_headers=[REQUEST_ID_HEADER, PROCESS_TIME_HEADER],
    )


class RequestContextMiddleware:
    """ASGI middleware tagging each HTTP response with a request id and its duration.

    An incoming ``X-Request-ID`` is reused so ids can be correlated across
    services; otherwise one is generated. The id is also placed on
    ``request.state.request_id``. With ``log_requests`` the request start and
    completion are logged, probe paths excepted.
    """

    def __init__(self, app, log_requests: bool = False):
        self.app = app
        self.log_requests = log_requests

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode("latin-1") or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id

        log = self.log_requests and scope["path"] not in PROBE_PATHS
        if log:
            logger.info(
                "Request started",
                request_id=request_id,
                method=scope["method"],
                path=scope["path"],
                headers=_loggable_headers(headers),
            )

        start_time = time.perf_counter()
        status_code = None

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed = time.perf_counter() - start_time
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + [
                    (REQUEST_ID_HEADER.lower().encode(), request_id.encode("latin-1")),
                    (PROCESS_TIME_HEADER.lower().encode(), str(round(elapsed, 4)).encode()),
                ]
            elif (
                log
                and message["type"] == "http.response.body"
                and not message.get("more_body", False)
            ):
                logger.info(
                    "Request completed",
                    request_id=request_id,
                    method=scope["method"],
                    path=scope["path"],
                    status_code=status_code,
                    duration=round(time.perf_counter() - start_time, 4),
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _loggable_headers(headers: dict) -> dict:
    loggable = {
        key.decode("latin-1"): value.decode("latin-1")
        for key, value in headers.items()
        if key in LOGGED_HEADERS
    }
    if "authorization" in loggable:
        loggable["authorization"] = "***"
    return loggable


def setup_request_context_middleware(app: FastAPI) -> None:
    """Add the request context middleware; request logging follows DEBUG."""
    app.add_middleware(RequestContextMiddleware, log_requests=settings.DEBUG)
