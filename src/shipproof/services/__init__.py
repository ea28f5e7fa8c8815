"""Shipproof service layer.

- ProofLifecycleService: shipment status state machine
- ShipmentService: shipment create/list/get/update
- ProofVideoService: upload-then-seal coordination and video lookups
- ShareLinkService: share-link issue/validate/revoke/cleanup
- AccountService: organizations, users and API keys
- ObjectStoreClient: S3-compatible proof video storage
"""

from shipproof.services.accounts import AccountService, RegisteredAccount
from shipproof.services.errors import (
    ConflictError,
    ExpiredError,
    ImmutableEntityError,
    InvalidArgumentError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ShipproofError,
    UploadFailedError,
)
from shipproof.services.lifecycle import ProofLifecycleService, TransitionResult
from shipproof.services.share_links import ShareLinkService
from shipproof.services.shipments import ShipmentPage, ShipmentService
from shipproof.services.storage import ObjectStoreClient, StorageError
from shipproof.services.videos import ProofVideoService

__all__ = [
    "AccountService",
    "ConflictError",
    "ExpiredError",
    "ImmutableEntityError",
    "InvalidArgumentError",
    "InvalidStateError",
    "InvalidTransitionError",
    "NotFoundError",
    "ObjectStoreClient",
    "ProofLifecycleService",
    "ProofVideoService",
    "RegisteredAccount",
    "ShareLinkService",
    "ShipmentPage",
    "ShipmentService",
    "ShipproofError",
    "StorageError",
    "TransitionResult",
    "UploadFailedError",
]
