"""Pydantic schemas for share-link endpoints.

The public validation response deliberately omits organization and user
identifiers.
"""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

from shipproof.db.models.base import ShipmentStatus  # noqa: TC001

if TYPE_CHECKING:
    from shipproof.db.models.share_links import ShareLink


class CreateShareLinkRequest(BaseModel):
    """Request schema for issuing a share link."""

    proof_video_id: UUID = Field(..., description="Proof video to share")
    expires_in_hours: int = Field(..., description="Validity in hours (positive integer)")

    model_config = ConfigDict(extra="forbid")


class ValidateShareLinkRequest(BaseModel):
    """Request schema for the public token check."""

    token: str = Field(..., min_length=1, max_length=256, description="Share link token")

    model_config = ConfigDict(extra="forbid")


class ShareLinkResponse(BaseModel):
    """Response schema for share-link details (authenticated callers)."""

    share_link_id: UUID = Field(..., description="Unique share link identifier")
    token: str = Field(..., description="Bearer token")
    proof_video_id: UUID = Field(..., description="Shared proof video")
    expires_at: datetime = Field(..., description="Expiry timestamp")
    created_at: datetime = Field(..., description="Creation timestamp")

    model_config = ConfigDict(from_attributes=True)


class SharedShipment(BaseModel):
    awb: str
    status: ShipmentStatus
    sealed_at: datetime | None = None


class SharedProofResponse(BaseModel):
    """What an anonymous share-link holder may see."""

    proof_video_id: UUID
    video_url: str
    sha256: str
    content_type: str
    uploaded_at: datetime
    expires_at: datetime
    shipment: SharedShipment

    @classmethod
    def from_link(cls, link: ShareLink) -> SharedProofResponse:
        video = link.proof_video
        return cls(
            proof_video_id=video.proof_video_id,
            video_url=video.video_url,
            sha256=video.sha256,
            content_type=video.content_type,
            uploaded_at=video.created_at,
            expires_at=link.expires_at,
            shipment=SharedShipment(
                awb=video.shipment.awb,
                status=video.shipment.status,
                sealed_at=video.shipment.sealed_at,
            ),
        )


class CleanupResponse(BaseModel):
    """Result of deleting expired share links."""

    removed: int = Field(..., description="Number of share links deleted")
