"""Share-link endpoints.

POST /share-links/validate is the only endpoint in the API reachable without
an API key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Query, Response, status

from shipproof.api.dependencies import AppSettings, DbSession  # noqa: TC001
from shipproof.api.middleware.auth import CurrentUser  # noqa: TC001
from shipproof.api.schemas.share_links import (
    CleanupResponse,
    CreateShareLinkRequest,
    SharedProofResponse,
    ShareLinkResponse,
    ValidateShareLinkRequest,
)
from shipproof.services.share_links import ShareLinkService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shipproof.core.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/share-links",
    tags=["share-links"],
)


def _service(db: AsyncSession, settings: Settings) -> ShareLinkService:
    return ShareLinkService(
        db,
        token_bytes=settings.share_links.token_bytes,
        max_expires_in_hours=settings.share_links.max_expires_in_hours,
    )


@router.post(
    "",
    response_model=ShareLinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a share link",
)
async def create_share_link(
    request: CreateShareLinkRequest,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
) -> ShareLinkResponse:
    link = await _service(db, settings).issue(
        request.proof_video_id,
        request.expires_in_hours,
        organization_id=user.organization_id,
    )
    await db.commit()
    return ShareLinkResponse.model_validate(link)


@router.get(
    "",
    response_model=list[ShareLinkResponse],
    summary="List share links",
)
async def list_share_links(
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    proof_video_id: Annotated[UUID | None, Query()] = None,
) -> list[ShareLinkResponse]:
    links = await _service(db, settings).list_links(
        user.organization_id,
        proof_video_id=proof_video_id,
    )
    return [ShareLinkResponse.model_validate(link) for link in links]


@router.post(
    "/validate",
    response_model=SharedProofResponse,
    summary="Resolve a share-link token (public)",
    responses={
        401: {"description": "Share link expired"},
        404: {"description": "Unknown token"},
    },
)
async def validate_share_link(
    request: ValidateShareLinkRequest,
    db: DbSession,
    settings: AppSettings,
) -> SharedProofResponse:
    link = await _service(db, settings).validate(request.token)
    return SharedProofResponse.from_link(link)


@router.delete(
    "/cleanup/expired",
    response_model=CleanupResponse,
    summary="Delete all expired share links",
)
async def cleanup_expired_share_links(
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
) -> CleanupResponse:
    removed = await _service(db, settings).cleanup_expired()
    logger.info(
        "Expired share links removed on request",
        extra={"removed": removed, "user_id": str(user.user_id)},
    )
    return CleanupResponse(removed=removed)


@router.get(
    "/{share_link_id}",
    response_model=ShareLinkResponse,
    summary="Get a share link",
)
async def get_share_link(
    share_link_id: UUID,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
) -> ShareLinkResponse:
    link = await _service(db, settings).get(share_link_id, user.organization_id)
    return ShareLinkResponse.model_validate(link)


@router.delete(
    "/{share_link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a share link",
)
async def revoke_share_link(
    share_link_id: UUID,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
) -> Response:
    await _service(db, settings).revoke(share_link_id, user.organization_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
