"""Translate exceptions raised below the routers into JSON error responses.

Every error leaves the API as:

    {"error": <kind>, "message": <text>, "detail": {...}, "request_id": <id>}

Service-layer errors are mapped to a status code by their ``kind``.
Anything unexpected is logged with its traceback and returned as a bare 500.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shipproof.api.middleware.request_id import get_request_id
from shipproof.services.errors import ShipproofError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[str, int] = {
    "not_found": 404,
    "conflict": 409,
    "invalid_transition": 400,
    "invalid_state": 400,
    "immutable_entity": 400,
    "invalid_argument": 400,
    "expired": 401,
    "upload_failed": 502,
}


class APIError(Exception):
    """An error raised by the HTTP layer itself rather than by a service."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 400,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(APIError):
    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__("unauthenticated", message, status_code=401)


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"error": error, "message": message}
    if request_id := get_request_id():
        body["request_id"] = request_id
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def _describe(exc: Exception) -> tuple[int, str, str, dict[str, Any] | None] | None:
    """Status, error kind, message and detail for a known exception type."""
    if isinstance(exc, ShipproofError):
        return STATUS_BY_KIND.get(exc.kind, 400), exc.kind, exc.message, exc.detail
    if isinstance(exc, APIError):
        return exc.status_code, exc.error, exc.message, exc.detail
    if isinstance(exc, HTTPException):
        return exc.status_code, "http_error", str(exc.detail), None
    if isinstance(exc, ValidationError):
        return 422, "validation_error", "Request validation failed", {
            "errors": exc.errors(include_url=False)
        }
    return None


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            described = _describe(exc)
            if described is None:
                logger.exception(
                    "Unhandled error on %s %s", request.method, request.url.path
                )
                return build_error_response(
                    "internal_error", "An internal error occurred", 500
                )

            status_code, error, message, detail = described
            if isinstance(exc, ShipproofError):
                logger.info(
                    "%s %s -> %d %s", request.method, request.url.path, status_code, error
                )
            return build_error_response(error, message, status_code, detail)
