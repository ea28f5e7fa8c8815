"""Shipment endpoints.

Shipments are created in CREATED and move through the proof lifecycle by
PATCHing their status. They are never deleted.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Query, status

from shipproof.api.dependencies import DbSession  # noqa: TC001
from shipproof.api.middleware.auth import CurrentUser  # noqa: TC001
from shipproof.api.schemas.shipments import (
    CreateShipmentRequest,
    ShipmentListResponse,
    ShipmentResponse,
    UpdateShipmentRequest,
)
from shipproof.db.models.base import ShipmentStatus  # noqa: TC001
from shipproof.services.shipments import MAX_PAGE_SIZE, ShipmentService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/shipments",
    tags=["shipments"],
    responses={401: {"description": "Authentication required"}},
)


@router.post(
    "",
    response_model=ShipmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a shipment",
)
async def create_shipment(
    request: CreateShipmentRequest,
    user: CurrentUser,
    db: DbSession,
) -> ShipmentResponse:
    """Create a shipment in CREATED for the caller's organization."""
    shipment = await ShipmentService(db).create(
        request.awb,
        organization_id=user.organization_id,
        created_by_id=user.user_id,
    )
    await db.commit()
    return ShipmentResponse.model_validate(shipment)


@router.get(
    "",
    response_model=ShipmentListResponse,
    summary="List shipments",
)
async def list_shipments(
    user: CurrentUser,
    db: DbSession,
    status_filter: Annotated[ShipmentStatus | None, Query(alias="status")] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 50,
) -> ShipmentListResponse:
    """List the caller's organization's shipments, newest first."""
    page = await ShipmentService(db).list_shipments(
        user.organization_id,
        status=status_filter,
        offset=offset,
        limit=limit,
    )
    return ShipmentListResponse(
        items=[ShipmentResponse.model_validate(s) for s in page.items],
        total=page.total,
        offset=page.offset,
        limit=page.limit,
    )


@router.get(
    "/{shipment_id}",
    response_model=ShipmentResponse,
    summary="Get a shipment",
)
async def get_shipment(
    shipment_id: UUID,
    user: CurrentUser,
    db: DbSession,
) -> ShipmentResponse:
    shipment = await ShipmentService(db).get(shipment_id, user.organization_id)
    return ShipmentResponse.model_validate(shipment)


@router.patch(
    "/{shipment_id}",
    response_model=ShipmentResponse,
    summary="Transition status and/or correct the AWB",
    description=(
        "Status changes follow CREATED -> RECORDING -> PROCESSING -> SEALED, with FAILED "
        "reachable from any non-terminal status. SEALED and FAILED shipments are immutable."
    ),
)
async def update_shipment(
    shipment_id: UUID,
    request: UpdateShipmentRequest,
    user: CurrentUser,
    db: DbSession,
) -> ShipmentResponse:
    shipment = await ShipmentService(db).update(
        shipment_id,
        user.organization_id,
        status=request.status,
        awb=request.awb,
    )
    await db.commit()

    logger.info(
        "Shipment updated",
        extra={
            "shipment_id": str(shipment_id),
            "status": shipment.status.value,
            "user_id": str(user.user_id),
        },
    )
    return ShipmentResponse.model_validate(shipment)
