"""Time-limited share links for proof videos."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import datetime  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shipproof.db.models.base import Base, TimestampTZ, UUIDPrimaryKey

if TYPE_CHECKING:
    from shipproof.db.models.shipments import ProofVideo


class ShareLink(Base):
    """Bearer token granting read access to one proof video until expires_at.

    Unlike shipments and videos, share links are deleted: individually on
    revocation and in bulk once expired.
    """

    __tablename__ = "share_links"

    share_link_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    token: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)

    proof_video_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("proof_videos.proof_video_id", ondelete="CASCADE"),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    proof_video: Mapped[ProofVideo] = relationship("ProofVideo", back_populates="share_links")

    __table_args__ = (
        Index("ix_share_links_proof_video_id", "proof_video_id"),
        Index("ix_share_links_expires_at", "expires_at"),
    )
