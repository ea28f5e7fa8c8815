"""Domain errors raised by the shipproof services.

Every error carries a machine-readable ``kind`` and a ``detail`` dict with
the identifiers and states a client needs to render an actionable message.
The HTTP layer maps ``kind`` to a status code; nothing here knows about HTTP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shipproof.db.models.base import ShipmentStatus


class ShipproofError(Exception):
    """Base class for recoverable domain errors."""

    kind = "error"

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        self.message = message
        self.detail = detail or {}
        super().__init__(message)


class NotFoundError(ShipproofError):
    """A referenced entity does not exist (or is not visible to the caller)."""

    kind = "not_found"

    def __init__(self, resource: str, identifier: object) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found: {identifier}",
            {"resource": resource, "id": str(identifier)},
        )


class ConflictError(ShipproofError):
    """A uniqueness invariant was violated or a concurrent writer won."""

    kind = "conflict"


class InvalidTransitionError(ShipproofError):
    """The requested status is not reachable from the current one."""

    kind = "invalid_transition"

    def __init__(
        self,
        current: ShipmentStatus,
        requested: ShipmentStatus,
        allowed: Iterable[ShipmentStatus],
    ) -> None:
        self.current = current
        self.requested = requested
        self.allowed = sorted(allowed, key=lambda s: s.value)
        super().__init__(
            f"Cannot transition shipment from {current.value} to {requested.value}",
            {
                "current_status": current.value,
                "requested_status": requested.value,
                "allowed": [s.value for s in self.allowed],
            },
        )


class InvalidStateError(ShipproofError):
    """The operation is not legal in the entity's current lifecycle state."""

    kind = "invalid_state"


class ImmutableEntityError(ShipproofError):
    """A mutation was attempted on a sealed or failed record."""

    kind = "immutable_entity"


class ExpiredError(ShipproofError):
    """A time-bound credential is past its validity."""

    kind = "expired"


class InvalidArgumentError(ShipproofError):
    """Malformed caller input."""

    kind = "invalid_argument"


class UploadFailedError(ShipproofError):
    """The blob store rejected or failed to store a payload."""

    kind = "upload_failed"
