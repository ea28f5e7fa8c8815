"""API key authentication.

APIKeyAuthMiddleware resolves an ``X-API-Key`` header (or an
``Authorization: Bearer`` token) to an active user and stores an
AuthenticatedUser on the request. It never rejects a request itself; routes
that need a caller depend on require_authenticated_user.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from shipproof.api.middleware.errors import AuthenticationError
from shipproof.services.accounts import AccountService

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession
    from starlette.responses import Response

logger = logging.getLogger(__name__)

current_user_ctx: ContextVar[AuthenticatedUser | None] = ContextVar("current_user", default=None)

# Bearer scheme for OpenAPI docs
bearer_scheme = HTTPBearer(auto_error=False)

API_KEY_HEADER = "X-API-Key"


@dataclass(frozen=True)
class AuthenticatedUser:
    """The caller, as established by the identity collaborator.

    Attributes:
        user_id: UUID of the authenticated user.
        organization_id: UUID of the user's organization.
        email: User email, for logs.
        auth_method: How the caller authenticated.
    """

    user_id: UUID
    organization_id: UUID
    email: str | None = None
    auth_method: str = "api_key"


def get_current_user() -> AuthenticatedUser | None:
    return current_user_ctx.get()


def extract_api_key(request: Request) -> str | None:
    """API key from X-API-Key, else from an Authorization bearer token."""
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key.strip() or None

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Validates API keys against the users table."""

    def __init__(
        self,
        app: Any,
        *,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            session_factory: Returns an async context manager yielding a session.
        """
        super().__init__(app)
        self._session_factory = session_factory

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        api_key = extract_api_key(request)

        if api_key:
            try:
                user = await self._validate_api_key(api_key)
            except SQLAlchemyError:
                logger.exception("Error validating API key")
                user = None

            if user is not None:
                current_user_ctx.set(user)
                request.state.user = user

        return await call_next(request)

    async def _validate_api_key(self, api_key: str) -> AuthenticatedUser | None:
        async with self._session_factory() as session:
            user = await AccountService(session).authenticate(api_key)
            if user is None:
                return None
            authenticated = AuthenticatedUser(
                user_id=user.user_id,
                organization_id=user.organization_id,
                email=user.email,
            )
            await session.commit()

        return authenticated


async def require_authenticated_user(
    request: Request,
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ] = None,
) -> AuthenticatedUser:
    """Dependency for routes that need an authenticated caller.

    The _credentials parameter only documents the scheme in OpenAPI; the
    middleware does the actual authentication.

    Raises:
        AuthenticationError: If no user was authenticated for this request.
    """
    user = getattr(request.state, "user", None) or get_current_user()

    if user is None:
        raise AuthenticationError()

    return user


CurrentUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]
