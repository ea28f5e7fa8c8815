"""Shipment proof lifecycle state machine.

The state machine is a table from each status to the statuses it may move to:

    CREATED -> RECORDING -> PROCESSING -> SEALED
       |           |            |
       +-----------+------------+--> FAILED

SEALED and FAILED are terminal. Requesting the status a shipment already has
is an idempotent no-op, even in a terminal state.

Every write is conditioned on the status the caller observed, so a concurrent
change between read and write surfaces as a ConflictError instead of being
overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value

from shipproof.db.models.base import ShipmentStatus
from shipproof.db.models.shipments import Shipment
from shipproof.services.errors import ConflictError, InvalidTransitionError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of a successful transition request.

    Attributes:
        shipment_id: The shipment that was addressed.
        previous_status: Status before the request.
        new_status: Status after the request.
        changed: False for the idempotent same-status case.
    """

    shipment_id: UUID
    previous_status: ShipmentStatus
    new_status: ShipmentStatus
    changed: bool


class ProofLifecycleService:
    """Owns the shipment status field and the terminal-state rules.

    Example:
        lifecycle = ProofLifecycleService(session)
        shipment = await lifecycle.get_shipment(shipment_id, organization_id)
        await lifecycle.request_transition(shipment, ShipmentStatus.RECORDING)
        await session.commit()
    """

    VALID_TRANSITIONS: ClassVar[dict[ShipmentStatus, frozenset[ShipmentStatus]]] = {
        ShipmentStatus.CREATED: frozenset({ShipmentStatus.RECORDING, ShipmentStatus.FAILED}),
        ShipmentStatus.RECORDING: frozenset({ShipmentStatus.PROCESSING, ShipmentStatus.FAILED}),
        ShipmentStatus.PROCESSING: frozenset({ShipmentStatus.SEALED, ShipmentStatus.FAILED}),
        ShipmentStatus.SEALED: frozenset(),
        ShipmentStatus.FAILED: frozenset(),
    }

    # Statuses in which a proof video may still be attached
    UPLOAD_ELIGIBLE: ClassVar[frozenset[ShipmentStatus]] = frozenset(
        {ShipmentStatus.CREATED, ShipmentStatus.RECORDING, ShipmentStatus.PROCESSING}
    )

    # Lifecycle timestamp stamped on entry into a terminal status
    TERMINAL_TIMESTAMPS: ClassVar[dict[ShipmentStatus, str]] = {
        ShipmentStatus.SEALED: "sealed_at",
        ShipmentStatus.FAILED: "failed_at",
    }

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._clock = clock

    def allowed_transitions(self, status: ShipmentStatus) -> frozenset[ShipmentStatus]:
        return self.VALID_TRANSITIONS.get(status, frozenset())

    def is_valid_transition(self, from_status: ShipmentStatus, to_status: ShipmentStatus) -> bool:
        """True if ``to_status`` may be requested from ``from_status``.

        The same-status request always counts as valid (idempotent no-op).
        """
        if from_status == to_status:
            return True
        return to_status in self.allowed_transitions(from_status)

    def is_terminal_state(self, status: ShipmentStatus) -> bool:
        return not self.allowed_transitions(status)

    def check_transition(self, current: ShipmentStatus, requested: ShipmentStatus) -> None:
        """Raise InvalidTransitionError unless ``requested`` is reachable from ``current``."""
        if not self.is_valid_transition(current, requested):
            raise InvalidTransitionError(current, requested, self.allowed_transitions(current))

    async def get_shipment(
        self,
        shipment_id: UUID,
        organization_id: UUID | None = None,
        *,
        for_update: bool = False,
    ) -> Shipment:
        """Load a shipment, optionally scoped to an organization and row-locked.

        Raises:
            NotFoundError: If absent or owned by another organization.
        """
        query = select(Shipment).where(Shipment.shipment_id == shipment_id)
        if organization_id is not None:
            query = query.where(Shipment.organization_id == organization_id)
        if for_update:
            # Refresh an already-loaded instance with the locked row's values
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self._session.execute(query)
        shipment = result.scalar_one_or_none()

        if shipment is None:
            raise NotFoundError("Shipment", shipment_id)

        return shipment

    async def request_transition(
        self,
        shipment: Shipment,
        requested: ShipmentStatus,
        *,
        changes: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Move ``shipment`` to ``requested`` if the table allows it.

        Args:
            shipment: Shipment as observed by the caller.
            requested: Target status.
            changes: Other column values written in the same guarded update.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
            ConflictError: If the shipment changed since it was observed.
        """
        current = shipment.status

        if requested == current and not changes:
            logger.debug(
                "Idempotent transition request",
                extra={"shipment_id": str(shipment.shipment_id), "status": current.value},
            )
            return TransitionResult(
                shipment_id=shipment.shipment_id,
                previous_status=current,
                new_status=current,
                changed=False,
            )

        try:
            self.check_transition(current, requested)
        except InvalidTransitionError:
            logger.warning(
                "Invalid transition attempted",
                extra={
                    "shipment_id": str(shipment.shipment_id),
                    "from_status": current.value,
                    "to_status": requested.value,
                },
            )
            raise

        values: dict[str, Any] = dict(changes or {})
        if requested != current:
            values["status"] = requested
            timestamp_field = self.TERMINAL_TIMESTAMPS.get(requested)
            if timestamp_field is not None:
                values[timestamp_field] = self._clock()

        await self.guarded_update(shipment, values)

        logger.info(
            "Shipment status transition completed",
            extra={
                "shipment_id": str(shipment.shipment_id),
                "from_status": current.value,
                "to_status": requested.value,
            },
        )

        return TransitionResult(
            shipment_id=shipment.shipment_id,
            previous_status=current,
            new_status=requested,
            changed=requested != current,
        )

    async def seal(self, shipment: Shipment) -> TransitionResult:
        """Seal a shipment from any upload-eligible status.

        Called by the upload coordinator inside the transaction that inserts
        the proof video; attaching the video completes whatever stages remain.

        Raises:
            InvalidTransitionError: If the shipment is already terminal.
            ConflictError: If the shipment changed since it was observed.
        """
        current = shipment.status
        if current not in self.UPLOAD_ELIGIBLE:
            raise InvalidTransitionError(
                current, ShipmentStatus.SEALED, self.allowed_transitions(current)
            )

        await self.guarded_update(
            shipment,
            {"status": ShipmentStatus.SEALED, "sealed_at": self._clock()},
        )

        logger.info(
            "Shipment sealed",
            extra={"shipment_id": str(shipment.shipment_id), "from_status": current.value},
        )

        return TransitionResult(
            shipment_id=shipment.shipment_id,
            previous_status=current,
            new_status=ShipmentStatus.SEALED,
            changed=True,
        )

    async def guarded_update(self, shipment: Shipment, values: dict[str, Any]) -> None:
        """Write ``values`` only if the row still has the status the caller saw.

        Raises:
            ConflictError: If no row matched (concurrent modification).
        """
        observed = shipment.status
        values = {**values, "updated_at": self._clock()}

        stmt = (
            update(Shipment)
            .where(
                Shipment.shipment_id == shipment.shipment_id,
                Shipment.status == observed,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount != 1:
            logger.warning(
                "Concurrent shipment modification detected",
                extra={
                    "shipment_id": str(shipment.shipment_id),
                    "observed_status": observed.value,
                },
            )
            raise ConflictError(
                "Shipment was modified concurrently; reload and retry",
                {"shipment_id": str(shipment.shipment_id), "observed_status": observed.value},
            )

        for key, value in values.items():
            set_committed_value(shipment, key, value)
