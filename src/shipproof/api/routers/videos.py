"""Proof video endpoints.

POST /videos/upload stores the video and seals the shipment in one step.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, File, Form, UploadFile, status

from shipproof.api.dependencies import AppSettings, DbSession, StorageClient  # noqa: TC001
from shipproof.api.middleware.auth import CurrentUser  # noqa: TC001
from shipproof.api.schemas.videos import ProofVideoResponse
from shipproof.services.videos import ProofVideoService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/videos",
    tags=["videos"],
    responses={401: {"description": "Authentication required"}},
)


@router.post(
    "/upload",
    response_model=ProofVideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload the proof video and seal the shipment",
)
async def upload_video(
    user: CurrentUser,
    db: DbSession,
    storage: StorageClient,
    settings: AppSettings,
    shipment_id: Annotated[UUID, Form(description="Shipment to seal")],
    file: Annotated[UploadFile, File(description="Proof video file")],
) -> ProofVideoResponse:
    """Attach the one proof video a shipment may have.

    Fails with 409 if the shipment already has a video, 400 if it is SEALED
    or FAILED or the file is not an acceptable video, and 502 if storage fails.
    """
    payload = await file.read()

    service = ProofVideoService(db, storage, settings.uploads)
    video = await service.attach_proof(
        shipment_id,
        payload,
        uploader_id=user.user_id,
        organization_id=user.organization_id,
        filename=file.filename,
        content_type=file.content_type,
    )
    return ProofVideoResponse.model_validate(video)


@router.get(
    "",
    response_model=list[ProofVideoResponse],
    summary="List proof videos",
)
async def list_videos(
    user: CurrentUser,
    db: DbSession,
    storage: StorageClient,
    settings: AppSettings,
) -> list[ProofVideoResponse]:
    videos = await ProofVideoService(db, storage, settings.uploads).list_videos(
        user.organization_id
    )
    return [ProofVideoResponse.model_validate(v) for v in videos]


@router.get(
    "/shipment/{shipment_id}",
    response_model=ProofVideoResponse,
    summary="Get the proof video of a shipment",
)
async def get_video_for_shipment(
    shipment_id: UUID,
    user: CurrentUser,
    db: DbSession,
    storage: StorageClient,
    settings: AppSettings,
) -> ProofVideoResponse:
    video = await ProofVideoService(db, storage, settings.uploads).get_video_for_shipment(
        shipment_id, user.organization_id
    )
    return ProofVideoResponse.model_validate(video)


@router.get(
    "/{proof_video_id}",
    response_model=ProofVideoResponse,
    summary="Get a proof video",
)
async def get_video(
    proof_video_id: UUID,
    user: CurrentUser,
    db: DbSession,
    storage: StorageClient,
    settings: AppSettings,
) -> ProofVideoResponse:
    video = await ProofVideoService(db, storage, settings.uploads).get_video(
        proof_video_id, user.organization_id
    )
    return ProofVideoResponse.model_validate(video)
