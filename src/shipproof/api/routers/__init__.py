"""Shipproof API routers, mounted under /api.

- shipments: shipment lifecycle
- videos: proof video upload and lookup
- share_links: share-link management and the public token check
"""

from shipproof.api.routers.share_links import router as share_links_router
from shipproof.api.routers.shipments import router as shipments_router
from shipproof.api.routers.videos import router as videos_router

__all__ = [
    "share_links_router",
    "shipments_router",
    "videos_router",
]
