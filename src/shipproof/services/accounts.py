"""Organizations, users and API keys.

API keys are shown to the caller once; only their SHA-256 digest is stored,
the same digest the auth middleware computes on every request.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shipproof.db.models.organizations import Organization, User
from shipproof.services.errors import ConflictError, InvalidArgumentError, NotFoundError
from shipproof.services.lifecycle import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "sp_"


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


@dataclass(frozen=True, slots=True)
class RegisteredAccount:
    """A newly created organization and owner, with the one-time API key."""

    organization_id: UUID
    user_id: UUID
    email: str
    api_key: str


class AccountService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._clock = clock

    async def register(self, organization_name: str, email: str, name: str) -> RegisteredAccount:
        """Create an organization and its first user in one transaction.

        Raises:
            InvalidArgumentError: If a field is blank or the email is malformed.
            ConflictError: If the email is already registered.
        """
        organization_name = organization_name.strip()
        email = email.strip().lower()
        name = name.strip()
        if not organization_name or not email or not name:
            raise InvalidArgumentError(
                "organization name, email and name are required",
                {"organization_name": organization_name, "email": email, "name": name},
            )

        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise InvalidArgumentError(str(e), {"email": email}) from e

        existing = await self._session.execute(select(User.user_id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Email is already registered", {"email": email})

        api_key = generate_api_key()
        organization = Organization(name=organization_name)
        self._session.add(organization)

        try:
            await self._session.flush()
            user = User(
                email=email,
                name=name,
                organization_id=organization.organization_id,
                api_key_hash=hash_api_key(api_key),
                api_key_issued_at=self._clock(),
                is_active=True,
            )
            self._session.add(user)
            await self._session.flush()
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("Email is already registered", {"email": email}) from e

        logger.info(
            "Registered organization",
            extra={
                "organization_id": str(organization.organization_id),
                "user_id": str(user.user_id),
            },
        )

        return RegisteredAccount(
            organization_id=organization.organization_id,
            user_id=user.user_id,
            email=email,
            api_key=api_key,
        )

    async def issue_api_key(self, user_id: UUID) -> str:
        """Rotate a user's API key; the previous key stops working.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        api_key = generate_api_key()
        user.api_key_hash = hash_api_key(api_key)
        user.api_key_issued_at = self._clock()
        await self._session.flush()

        logger.info("Issued API key", extra={"user_id": str(user_id)})
        return api_key

    async def authenticate(self, api_key: str) -> User | None:
        """The active user owning ``api_key``, or None."""
        result = await self._session.execute(
            select(User).where(User.api_key_hash == hash_api_key(api_key))
        )
        user = result.scalar_one_or_none()

        if user is None:
            logger.debug("API key validation failed: key not found")
            return None
        if not user.is_active:
            logger.debug("API key validation failed: user inactive")
            return None

        user.last_seen_at = self._clock()
        await self._session.flush()
        return user
