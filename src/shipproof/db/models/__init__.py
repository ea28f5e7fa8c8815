"""SQLAlchemy ORM models for shipproof.

- base: metadata, shared column types, ShipmentStatus
- organizations: organizations and their users
- shipments: shipments and proof videos
- share_links: time-limited share links
"""

from shipproof.db.models.base import Base, ShipmentStatus, metadata
from shipproof.db.models.organizations import Organization, User
from shipproof.db.models.share_links import ShareLink
from shipproof.db.models.shipments import ProofVideo, Shipment

__all__ = [
    "Base",
    "Organization",
    "ProofVideo",
    "ShareLink",
    "Shipment",
    "ShipmentStatus",
    "User",
    "metadata",
]
