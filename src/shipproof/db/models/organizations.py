"""Organizations and their users.

Users authenticate with an API key; only the SHA-256 digest of the key is
stored.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shipproof.db.models.base import (
    Base,
    MediumString,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)

if TYPE_CHECKING:
    from shipproof.db.models.shipments import Shipment


class Organization(Base):
    """A tenant owning shipments and users."""

    __tablename__ = "organizations"

    organization_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    name: Mapped[MediumString] = mapped_column(nullable=False)

    users: Mapped[list[User]] = relationship("User", back_populates="organization")
    shipments: Mapped[list[Shipment]] = relationship(
        "Shipment",
        back_populates="organization",
    )


class User(Base):
    """A member of an organization, identified by email."""

    __tablename__ = "users"

    user_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[MediumString] = mapped_column(nullable=False)

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.organization_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Hex SHA-256 of the API key; the key itself is never persisted
    api_key_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    api_key_issued_at: Mapped[OptionalTimestampTZ]
    last_seen_at: Mapped[OptionalTimestampTZ]

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    organization: Mapped[Organization] = relationship("Organization", back_populates="users")

    __table_args__ = (Index("ix_users_organization_id", "organization_id"),)
