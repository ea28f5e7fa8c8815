"""Shipproof API middleware components.

- Request ID tracking
- Consistent error response formatting
- API key authentication
"""

from shipproof.api.middleware.auth import (
    APIKeyAuthMiddleware,
    AuthenticatedUser,
    CurrentUser,
    get_current_user,
    require_authenticated_user,
)
from shipproof.api.middleware.errors import (
    APIError,
    AuthenticationError,
    ErrorHandlerMiddleware,
)
from shipproof.api.middleware.request_id import RequestIDMiddleware, get_request_id

__all__ = [
    "APIError",
    "APIKeyAuthMiddleware",
    "AuthenticatedUser",
    "AuthenticationError",
    "CurrentUser",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "get_current_user",
    "get_request_id",
    "require_authenticated_user",
]
