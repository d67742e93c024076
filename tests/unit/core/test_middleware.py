"""
Unit tests for the request context middleware.
"""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from app.core import middleware
from app.core.middleware import RequestContextMiddleware


def build_app(log_requests: bool) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware, log_requests=log_requests)

    @app.get("/echo")
    async def echo(request: Request):
        return {"request_id": request.state.request_id}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


async def get(app: FastAPI, path: str, **kwargs):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(path, **kwargs)


@pytest.fixture
def request_logger(monkeypatch) -> Mock:
    logger = Mock()
    monkeypatch.setattr(middleware, "logger", logger)
    return logger


class TestRequestContextMiddleware:
    """Tests for request id and timing headers."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generates_request_id(self, request_logger):
        response = await get(build_app(log_requests=False), "/echo")

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 32
        assert response.json()["request_id"] == request_id
        assert float(response.headers["X-Process-Time"]) >= 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reuses_incoming_request_id(self, request_logger):
        response = await get(
            build_app(log_requests=False), "/echo", headers={"X-Request-ID": "upstream-42"}
        )

        assert response.headers["X-Request-ID"] == "upstream-42"
        assert response.json()["request_id"] == "upstream-42"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_logging_unless_enabled(self, request_logger):
        await get(build_app(log_requests=False), "/echo")

        request_logger.info.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_logs_start_and_completion_with_masked_token(self, request_logger):
        response = await get(
            build_app(log_requests=True),
            "/echo",
            headers={"Authorization": "Bearer secret-token"},
        )

        messages = [c.args[0] for c in request_logger.info.call_args_list]
        assert messages == ["Request started", "Request completed"]

        started = request_logger.info.call_args_list[0].kwargs
        assert started["headers"]["authorization"] == "***"
        completed = request_logger.info.call_args_list[1].kwargs
        assert completed["status_code"] == 200
        assert completed["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_paths_not_logged_but_timed(self, request_logger):
        response = await get(build_app(log_requests=True), "/health")

        assert "X-Process-Time" in response.headers
        request_logger.info.assert_not_called()
