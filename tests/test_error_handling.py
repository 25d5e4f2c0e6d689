"""
Tests for error response formatting and the request logging middleware.
"""

import json
import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from toolshare.middleware import RequestLoggingMiddleware
from toolshare.services.error_handler import ErrorHandlerService
from toolshare.utils.exceptions import (
    APIException,
    ListingWriteError,
    NotFoundError,
    ReservationConflictError,
)
from tests.conftest import auth_headers


class TestErrorHandlerService:
    """Test error handler service functionality."""

    def test_format_error_response(self):
        response = ErrorHandlerService.format_error_response(
            error_code="TEST_ERROR",
            message="Test error message",
            details=[{"field": "rate", "message": "must be positive"}],
            request_id="abc123"
        )

        assert response["error"]["code"] == "TEST_ERROR"
        assert response["error"]["message"] == "Test error message"
        assert response["error"]["request_id"] == "abc123"
        assert response["error"]["details"][0]["field"] == "rate"
        assert response["error"]["timestamp"].endswith("Z")

    def test_handle_api_exception(self):
        response = ErrorHandlerService.handle_api_exception(ReservationConflictError("abc"))

        assert response.status_code == 409
        body = json.loads(response.body)
        assert body["error"]["code"] == "CONFLICT"
        assert "already reserved" in body["error"]["message"]
        assert body["error"]["request_id"]

    def test_listing_write_error_message(self):
        error = ListingWriteError("create", RuntimeError("disk full"))

        assert error.status_code == 500
        assert error.detail == "Failed to create listing: disk full"

    def test_handle_validation_error(self):
        class Sample(BaseModel):
            rate: int

        with pytest.raises(PydanticValidationError) as exc_info:
            Sample(rate="lots")

        response = ErrorHandlerService.handle_validation_error(exc_info.value)

        assert response.status_code == 422
        body = json.loads(response.body)
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "rate"

    def test_handle_database_errors(self):
        integrity = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))
        operational = OperationalError("SELECT", {}, Exception("database is locked"))

        conflict = ErrorHandlerService.handle_database_error(integrity)
        failure = ErrorHandlerService.handle_database_error(operational)

        assert conflict.status_code == 409
        assert json.loads(conflict.body)["error"]["message"] == "Constraint violation: Duplicate value for unique field"
        assert failure.status_code == 500
        assert "locked" not in json.loads(failure.body)["error"]["message"]

    def test_handle_unexpected_error(self):
        response = ErrorHandlerService.handle_unexpected_error(RuntimeError("secret detail"))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "secret" not in body["error"]["message"]


class TestRequestLoggingMiddleware:
    """Middleware tested on a bare app."""

    @pytest.fixture
    def test_app(self):
        test_app = FastAPI()
        test_app.add_middleware(RequestLoggingMiddleware, max_request_size=100)

        @test_app.exception_handler(APIException)
        async def api_exception_handler(request: Request, exc: APIException):
            return ErrorHandlerService.handle_api_exception(exc, request)

        @test_app.get("/item")
        async def get_item():
            raise NotFoundError("Item", "42")

        @test_app.post("/echo")
        async def echo(data: dict):
            return data

        return test_app

    @pytest.mark.asyncio
    async def test_request_id_matches_error_body(self, test_app):
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/item")

        assert response.status_code == 404
        assert response.headers["X-Request-ID"] == response.json()["error"]["request_id"]
        assert "X-Processing-Time" in response.headers

    @pytest.mark.asyncio
    async def test_oversized_request_is_rejected(self, test_app):
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            small = await client.post("/echo", json={"a": 1})
            large = await client.post("/echo", json={"a": "x" * 500})

        assert small.status_code == 200
        assert large.status_code == 400
        assert "byte limit" in large.json()["error"]["message"]


class TestApplicationErrors:
    """Error bodies produced by the real application."""

    @pytest.mark.asyncio
    async def test_not_found_shape(self, client, owner):
        response = await client.get(
            "/listing/get-listing/00000000-0000-0000-0000-000000000000", headers=auth_headers(owner)
        )

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert set(error) >= {"code", "message", "timestamp", "request_id"}
        assert response.headers["X-Request-ID"] == error["request_id"]

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/no-such-route")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "HTTP_404"

    @pytest.mark.asyncio
    async def test_request_validation_error(self, client, renter):
        response = await client.post(
            "/reservation/create-reservation",
            json={"listingId": "x", "startDate": "not-a-date"},
            headers=auth_headers(renter),
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"]

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
