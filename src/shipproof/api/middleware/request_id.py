"""Request ID middleware.

Every response carries X-Request-ID. A client-supplied ID is kept when it is
short and made of token characters; anything else is replaced by a UUID4 so
that log lines and error bodies never carry arbitrary client text. Error
bodies repeat the same ID so they can be matched with server logs.
"""

import re
import uuid
from collections.abc import Callable
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def get_request_id() -> str | None:
    """The request ID of the current request, or None outside a request."""
    return request_id_ctx.get()


def resolve_request_id(supplied: str | None) -> str:
    """The client's ID when it is usable, otherwise a fresh UUID4."""
    if (
        supplied
        and len(supplied) <= MAX_REQUEST_ID_LENGTH
        and _REQUEST_ID_PATTERN.match(supplied)
    ):
        return supplied
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Stores the request ID in a context variable and echoes it in the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
