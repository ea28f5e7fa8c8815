"""Pydantic request/response schemas for the shipproof API."""

from shipproof.api.schemas.share_links import (
    CleanupResponse,
    CreateShareLinkRequest,
    SharedProofResponse,
    ShareLinkResponse,
    ValidateShareLinkRequest,
)
from shipproof.api.schemas.shipments import (
    CreateShipmentRequest,
    ShipmentListResponse,
    ShipmentResponse,
    UpdateShipmentRequest,
)
from shipproof.api.schemas.videos import ProofVideoResponse

__all__ = [
    "CleanupResponse",
    "CreateShareLinkRequest",
    "CreateShipmentRequest",
    "ProofVideoResponse",
    "ShareLinkResponse",
    "SharedProofResponse",
    "ShipmentListResponse",
    "ShipmentResponse",
    "UpdateShipmentRequest",
    "ValidateShareLinkRequest",
]
