"""Pydantic schemas for shipment endpoints."""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

from shipproof.db.models.base import ShipmentStatus  # noqa: TC001


class CreateShipmentRequest(BaseModel):
    """Request schema for creating a shipment in CREATED."""

    awb: str = Field(..., min_length=1, max_length=100, description="Air waybill number")

    model_config = ConfigDict(extra="forbid")


class UpdateShipmentRequest(BaseModel):
    """Request schema for a status transition and/or AWB correction.

    Sealed and failed shipments reject any effective change.
    """

    status: ShipmentStatus | None = Field(None, description="Requested lifecycle status")
    awb: str | None = Field(None, min_length=1, max_length=100, description="New AWB")

    model_config = ConfigDict(extra="forbid")


class ShipmentResponse(BaseModel):
    """Response schema for shipment details."""

    shipment_id: UUID = Field(..., description="Unique shipment identifier")
    awb: str = Field(..., description="Air waybill number")
    status: ShipmentStatus = Field(..., description="Current lifecycle status")
    organization_id: UUID = Field(..., description="Owning organization")
    created_by_id: UUID = Field(..., description="User who created the shipment")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    sealed_at: datetime | None = Field(None, description="Seal timestamp")
    failed_at: datetime | None = Field(None, description="Failure timestamp")

    model_config = ConfigDict(from_attributes=True)


class ShipmentListResponse(BaseModel):
    """Paginated list of shipments."""

    items: list[ShipmentResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of shipments matching the filter")
    offset: int = Field(..., description="Offset of the first item")
    limit: int = Field(..., description="Page size")
