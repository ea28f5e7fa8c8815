"""Time-limited share links for proof videos.

A share link token is a bearer credential: 32 random bytes (by default) from
the secrets module, rendered as 64 hex characters. Token uniqueness is
enforced by the database; a collision fails instead of rebinding a token.

Expired links are rejected by validate() but only removed by
cleanup_expired(), which an external scheduler runs through the CLI.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from shipproof.db.models.share_links import ShareLink
from shipproof.db.models.shipments import ProofVideo, Shipment
from shipproof.services.errors import (
    ConflictError,
    ExpiredError,
    InvalidArgumentError,
    NotFoundError,
)
from shipproof.services.lifecycle import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_BYTES = 32
# Ten years
MAX_EXPIRES_IN_HOURS = 24 * 365 * 10


def generate_token(token_bytes: int = DEFAULT_TOKEN_BYTES) -> str:
    """Fixed-width hex token with ``8 * token_bytes`` bits of entropy."""
    return secrets.token_hex(token_bytes)


def _token_hint(token: str) -> str:
    return token[:8] + "..."


class ShareLinkService:
    """Issue, validate, revoke and clean up share links.

    Issue and revoke flush only; the caller commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
        max_expires_in_hours: int = MAX_EXPIRES_IN_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if token_bytes < DEFAULT_TOKEN_BYTES:
            msg = f"token_bytes must be at least {DEFAULT_TOKEN_BYTES}"
            raise ValueError(msg)
        self._session = session
        self._token_bytes = token_bytes
        self._max_expires_in_hours = max_expires_in_hours
        self._clock = clock

    async def issue(
        self,
        proof_video_id: UUID,
        expires_in_hours: int,
        *,
        organization_id: UUID | None = None,
    ) -> ShareLink:
        """Create a share link for a proof video.

        The video's shipment does not have to be sealed.

        Raises:
            InvalidArgumentError: If ``expires_in_hours`` is not a positive integer
                or exceeds the configured maximum.
            NotFoundError: If the video does not exist (or belongs to another organization).
            ConflictError: If the generated token collides with an existing one.
        """
        if (
            isinstance(expires_in_hours, bool)
            or not isinstance(expires_in_hours, int)
            or expires_in_hours <= 0
        ):
            raise InvalidArgumentError(
                "expires_in_hours must be a positive integer",
                {"expires_in_hours": expires_in_hours},
            )
        if expires_in_hours > self._max_expires_in_hours:
            raise InvalidArgumentError(
                f"expires_in_hours must not exceed {self._max_expires_in_hours}",
                {
                    "expires_in_hours": expires_in_hours,
                    "max_expires_in_hours": self._max_expires_in_hours,
                },
            )

        await self._ensure_video_visible(proof_video_id, organization_id)

        link = ShareLink(
            token=generate_token(self._token_bytes),
            proof_video_id=proof_video_id,
            expires_at=self._clock() + timedelta(hours=expires_in_hours),
        )
        self._session.add(link)

        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError(
                "Share link token collision; retry the request",
                {"proof_video_id": str(proof_video_id)},
            ) from e

        logger.info(
            "Issued share link",
            extra={
                "share_link_id": str(link.share_link_id),
                "proof_video_id": str(proof_video_id),
                "expires_at": link.expires_at.isoformat(),
                "token": _token_hint(link.token),
            },
        )
        return link

    async def validate(self, token: str) -> ShareLink:
        """Resolve an unexpired token to its link, with video and shipment loaded.

        Raises:
            NotFoundError: If no link has this token.
            ExpiredError: If the link's expiry has passed.
        """
        result = await self._session.execute(
            select(ShareLink)
            .where(ShareLink.token == token)
            .options(selectinload(ShareLink.proof_video).selectinload(ProofVideo.shipment))
        )
        link = result.scalar_one_or_none()

        if link is None:
            logger.warning("Share link validation failed: unknown token")
            raise NotFoundError("ShareLink", _token_hint(token))

        if self._clock() > link.expires_at:
            logger.warning(
                "Share link validation failed: expired",
                extra={
                    "share_link_id": str(link.share_link_id),
                    "expires_at": link.expires_at.isoformat(),
                },
            )
            raise ExpiredError(
                "Share link has expired",
                {"expires_at": link.expires_at.isoformat()},
            )

        logger.info(
            "Share link validated",
            extra={
                "share_link_id": str(link.share_link_id),
                "proof_video_id": str(link.proof_video_id),
            },
        )
        return link

    async def get(self, share_link_id: UUID, organization_id: UUID | None = None) -> ShareLink:
        """Raises NotFoundError if absent or not visible to the organization."""
        query = select(ShareLink).where(ShareLink.share_link_id == share_link_id)
        if organization_id is not None:
            query = self._scope_to_organization(query, organization_id)

        result = await self._session.execute(query)
        link = result.scalar_one_or_none()
        if link is None:
            raise NotFoundError("ShareLink", share_link_id)
        return link

    async def list_links(
        self,
        organization_id: UUID,
        *,
        proof_video_id: UUID | None = None,
    ) -> list[ShareLink]:
        """The organization's share links, newest first."""
        query = self._scope_to_organization(select(ShareLink), organization_id)
        if proof_video_id is not None:
            query = query.where(ShareLink.proof_video_id == proof_video_id)

        result = await self._session.execute(query.order_by(ShareLink.created_at.desc()))
        return list(result.scalars().all())

    async def revoke(self, share_link_id: UUID, organization_id: UUID | None = None) -> None:
        """Delete one share link.

        Raises:
            NotFoundError: If absent or not visible to the organization.
        """
        link = await self.get(share_link_id, organization_id)
        await self._session.delete(link)
        await self._session.flush()

        logger.info("Revoked share link", extra={"share_link_id": str(share_link_id)})

    async def cleanup_expired(self) -> int:
        """Delete every link with expires_at before now; return how many went.

        Runs as one statement and commits, so the removal is all-or-nothing.
        """
        now = self._clock()
        result = await self._session.execute(
            delete(ShareLink)
            .where(ShareLink.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()

        removed = result.rowcount or 0
        logger.info(
            "Expired share links cleaned up",
            extra={"removed": removed, "cutoff": now.isoformat()},
        )
        return removed

    async def _ensure_video_visible(
        self, proof_video_id: UUID, organization_id: UUID | None
    ) -> None:
        query = select(ProofVideo.proof_video_id).where(
            ProofVideo.proof_video_id == proof_video_id
        )
        if organization_id is not None:
            query = query.join(Shipment, ProofVideo.shipment_id == Shipment.shipment_id).where(
                Shipment.organization_id == organization_id
            )

        result = await self._session.execute(query)
        if result.scalar_one_or_none() is None:
            raise NotFoundError("ProofVideo", proof_video_id)

    @staticmethod
    def _scope_to_organization(query, organization_id: UUID):
        return (
            query.join(ProofVideo, ShareLink.proof_video_id == ProofVideo.proof_video_id)
            .join(Shipment, ProofVideo.shipment_id == Shipment.shipment_id)
            .where(Shipment.organization_id == organization_id)
        )
