"""Shipments and their proof videos.

A shipment owns at most one proof video. The one-to-one binding is a unique
constraint on proof_videos.shipment_id so concurrent uploads are arbitrated
by the database.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Enum, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shipproof.db.models.base import (
    Base,
    OptionalTimestampTZ,
    ShipmentStatus,
    TimestampTZ,
    UUIDPrimaryKey,
)

if TYPE_CHECKING:
    from shipproof.db.models.organizations import Organization, User
    from shipproof.db.models.share_links import ShareLink


class Shipment(Base):
    """A shipment moving through the proof lifecycle.

    Shipments are audit records: they are never deleted, and once SEALED or
    FAILED no column changes again.
    """

    __tablename__ = "shipments"

    shipment_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    awb: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[ShipmentStatus] = mapped_column(
        Enum(ShipmentStatus, name="shipment_status", create_constraint=True),
        nullable=False,
        default=ShipmentStatus.CREATED,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.organization_id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )

    sealed_at: Mapped[OptionalTimestampTZ]
    failed_at: Mapped[OptionalTimestampTZ]

    organization: Mapped[Organization] = relationship(
        "Organization",
        back_populates="shipments",
    )
    created_by: Mapped[User] = relationship("User", foreign_keys=[created_by_id])
    proof_video: Mapped[ProofVideo | None] = relationship(
        "ProofVideo",
        back_populates="shipment",
        uselist=False,
    )

    __table_args__ = (
        UniqueConstraint("awb", "organization_id", name="uq_shipments_awb_organization_id"),
        Index("ix_shipments_organization_id", "organization_id"),
        Index("ix_shipments_status", "status"),
        Index("ix_shipments_created_at", "created_at"),
    )


class ProofVideo(Base):
    """The single proof video sealing a shipment.

    Created once, together with the seal, and never updated or deleted.
    """

    __tablename__ = "proof_videos"

    proof_video_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    shipment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("shipments.shipment_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )

    video_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)

    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(500), nullable=True)

    shipment: Mapped[Shipment] = relationship("Shipment", back_populates="proof_video")
    uploaded_by: Mapped[User] = relationship("User", foreign_keys=[uploaded_by_id])
    share_links: Mapped[list[ShareLink]] = relationship(
        "ShareLink",
        back_populates="proof_video",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_proof_videos_sha256", "sha256"),)
