"""Base model definitions and shared column types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Reusable annotated column types
- The shipment status enum shared by models and services
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column

# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

MediumString = Annotated[str, mapped_column(String(255))]


class Base(DeclarativeBase):
    """Declarative base for all shipproof models.

    Server-side defaults (ids, timestamps) are fetched with RETURNING on insert,
    so they are readable without a lazy load.
    """

    metadata = metadata
    __mapper_args__ = {"eager_defaults": True}


class ShipmentStatus(enum.Enum):
    """Proof lifecycle states of a shipment.

    States:
        CREATED: Shipment registered, nothing recorded yet
        RECORDING: Proof video is being recorded
        PROCESSING: Recording finished, video being processed
        SEALED: Proof video attached; the record is frozen
        FAILED: Proof capture abandoned; the record is frozen
    """

    CREATED = "CREATED"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    SEALED = "SEALED"
    FAILED = "FAILED"
