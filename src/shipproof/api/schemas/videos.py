"""Pydantic schemas for proof video endpoints."""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field


class ProofVideoResponse(BaseModel):
    """Response schema for a stored proof video."""

    proof_video_id: UUID = Field(..., description="Unique proof video identifier")
    shipment_id: UUID = Field(..., description="Sealed shipment")
    uploaded_by_id: UUID = Field(..., description="Uploading user")
    video_url: str = Field(..., description="Retrievable URL of the stored video")
    sha256: str = Field(..., description="SHA-256 of the video bytes (hex)")
    size_bytes: int = Field(..., description="Video size in bytes")
    content_type: str = Field(..., description="MIME type")
    original_filename: str | None = Field(None, description="Filename given at upload")
    created_at: datetime = Field(..., description="Upload timestamp")

    model_config = ConfigDict(from_attributes=True)
