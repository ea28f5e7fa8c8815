"""Shipment operations scoped to an organization.

Shipments are never deleted. Status changes go through the lifecycle service;
once a shipment is SEALED or FAILED no column may change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from shipproof.db.models.base import ShipmentStatus
from shipproof.db.models.shipments import Shipment
from shipproof.services.errors import (
    ConflictError,
    ImmutableEntityError,
    InvalidArgumentError,
)
from shipproof.services.lifecycle import ProofLifecycleService, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class ShipmentPage:
    """A page of shipments plus the total matching count."""

    items: list[Shipment]
    total: int
    offset: int
    limit: int


def _normalize_awb(awb: str) -> str:
    awb = awb.strip()
    if not awb:
        raise InvalidArgumentError("AWB must not be empty", {"field": "awb"})
    return awb


class ShipmentService:
    """Create, read and update shipments.

    Methods flush but do not commit; the caller owns the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._lifecycle = ProofLifecycleService(session, clock=clock)

    @property
    def lifecycle(self) -> ProofLifecycleService:
        return self._lifecycle

    async def create(
        self,
        awb: str,
        *,
        organization_id: UUID,
        created_by_id: UUID,
    ) -> Shipment:
        """Create a shipment in CREATED.

        Raises:
            InvalidArgumentError: If the AWB is blank.
            ConflictError: If the AWB already exists in the organization.
        """
        awb = _normalize_awb(awb)
        await self._ensure_awb_available(awb, organization_id)

        shipment = Shipment(
            awb=awb,
            status=ShipmentStatus.CREATED,
            organization_id=organization_id,
            created_by_id=created_by_id,
        )
        self._session.add(shipment)

        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise self._duplicate_awb(awb, organization_id) from e

        logger.info(
            "Created shipment",
            extra={
                "shipment_id": str(shipment.shipment_id),
                "organization_id": str(organization_id),
                "awb": awb,
            },
        )
        return shipment

    async def get(self, shipment_id: UUID, organization_id: UUID) -> Shipment:
        """Raises NotFoundError if absent or owned by another organization."""
        return await self._lifecycle.get_shipment(shipment_id, organization_id)

    async def list_shipments(
        self,
        organization_id: UUID,
        *,
        status: ShipmentStatus | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> ShipmentPage:
        """List an organization's shipments, newest first."""
        if offset < 0:
            raise InvalidArgumentError("offset must not be negative", {"offset": offset})
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidArgumentError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit}
            )

        filters = [Shipment.organization_id == organization_id]
        if status is not None:
            filters.append(Shipment.status == status)

        count_result = await self._session.execute(
            select(func.count()).select_from(Shipment).where(*filters)
        )
        total = count_result.scalar_one()

        result = await self._session.execute(
            select(Shipment)
            .where(*filters)
            .order_by(Shipment.created_at.desc())
            .offset(offset)
            .limit(limit)
        )

        return ShipmentPage(
            items=list(result.scalars().all()),
            total=total,
            offset=offset,
            limit=limit,
        )

    async def update(
        self,
        shipment_id: UUID,
        organization_id: UUID,
        *,
        status: ShipmentStatus | None = None,
        awb: str | None = None,
    ) -> Shipment:
        """Apply a status and/or AWB change.

        An exact same-status request with no other change is a no-op in any
        state. Any effective change to a SEALED or FAILED shipment fails with
        ImmutableEntityError before transition rules are consulted.

        Raises:
            NotFoundError: If the shipment is not visible to the organization.
            ImmutableEntityError: If the shipment is terminal.
            InvalidTransitionError: If the status change is not allowed.
            ConflictError: On a duplicate AWB or a concurrent modification.
        """
        shipment = await self._lifecycle.get_shipment(shipment_id, organization_id)

        if self._lifecycle.is_terminal_state(shipment.status):
            self._reject_terminal_mutation(shipment, status=status, awb=awb)
            return shipment

        if awb is not None:
            awb = _normalize_awb(awb)
        awb_changed = awb is not None and awb != shipment.awb
        status_changed = status is not None and status != shipment.status

        if not awb_changed and not status_changed:
            return shipment

        if status_changed:
            self._lifecycle.check_transition(shipment.status, status)

        changes = {}
        if awb_changed:
            await self._ensure_awb_available(awb, organization_id)
            changes["awb"] = awb

        try:
            await self._lifecycle.request_transition(
                shipment,
                status if status_changed else shipment.status,
                changes=changes,
            )
        except IntegrityError as e:
            await self._session.rollback()
            raise self._duplicate_awb(awb, organization_id) from e

        return shipment

    @staticmethod
    def _reject_terminal_mutation(
        shipment: Shipment,
        *,
        status: ShipmentStatus | None,
        awb: str | None,
    ) -> None:
        # Raw input is compared before any validation so a malformed AWB
        # still reports the shipment as immutable
        status_differs = status is not None and status != shipment.status
        awb_differs = awb is not None and awb.strip() != shipment.awb
        if not status_differs and not awb_differs:
            return

        logger.warning(
            "Mutation attempted on terminal shipment",
            extra={
                "shipment_id": str(shipment.shipment_id),
                "status": shipment.status.value,
            },
        )
        raise ImmutableEntityError(
            f"Shipment is {shipment.status.value} and can no longer be modified",
            {
                "shipment_id": str(shipment.shipment_id),
                "current_status": shipment.status.value,
            },
        )

    async def _ensure_awb_available(self, awb: str, organization_id: UUID) -> None:
        # Advisory only: the unique constraint is what actually arbitrates
        result = await self._session.execute(
            select(Shipment.shipment_id).where(
                Shipment.awb == awb,
                Shipment.organization_id == organization_id,
            )
        )
        if result.scalar_one_or_none() is not None:
            raise self._duplicate_awb(awb, organization_id)

    @staticmethod
    def _duplicate_awb(awb: str | None, organization_id: UUID) -> ConflictError:
        return ConflictError(
            f"A shipment with AWB {awb} already exists in this organization",
            {"awb": awb, "organization_id": str(organization_id)},
        )
