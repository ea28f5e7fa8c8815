"""Proof video upload coordination and lookups.

attach_proof runs upload-then-seal:

1. Pure checks: the shipment exists, has no video yet and is still eligible
   (CREATED, RECORDING or PROCESSING); the payload is a plausible video.
2. The payload goes to the object store. Nothing has been written to the
   database yet, so a storage failure leaves no trace.
3. One transaction re-reads the shipment under a row lock, inserts the
   ProofVideo and seals the shipment. The unique constraint on
   proof_videos.shipment_id arbitrates concurrent uploads; the loser is
   rolled back and its blob removed.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shipproof.db.models.shipments import ProofVideo, Shipment
from shipproof.services.errors import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    UploadFailedError,
)
from shipproof.services.lifecycle import ProofLifecycleService, utcnow
from shipproof.services.storage import StorageError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from shipproof.core.config import UploadSettings
    from shipproof.services.storage import ObjectStoreClient, UploadResult

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mkv": "video/x-matroska",
    "webm": "video/webm",
}


def resolve_extension(filename: str | None, content_type: str | None) -> str | None:
    """Pick the file extension from the filename, else from the content type."""
    if filename:
        suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
        if suffix:
            return suffix
    if content_type:
        base_type = content_type.split(";", 1)[0].strip().lower()
        for ext, known_type in VIDEO_CONTENT_TYPES.items():
            if known_type == base_type:
                return ext
    return None


class ProofVideoService:
    """Attaches the single proof video to a shipment and reads videos back.

    Example:
        service = ProofVideoService(session, storage, settings.uploads)
        video = await service.attach_proof(
            shipment_id,
            payload,
            uploader_id=user.user_id,
            organization_id=user.organization_id,
            filename="proof.mp4",
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: ObjectStoreClient,
        upload_settings: UploadSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._storage = storage
        self._settings = upload_settings
        self._lifecycle = ProofLifecycleService(session, clock=clock)

    async def attach_proof(
        self,
        shipment_id: UUID,
        payload: bytes,
        *,
        uploader_id: UUID,
        organization_id: UUID,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> ProofVideo:
        """Store ``payload`` and seal the shipment with it, atomically.

        Commits on success and rolls back on failure; the caller must not
        have other pending work in the session.

        Raises:
            NotFoundError: If the shipment is not visible to the organization.
            ConflictError: If the shipment already has a proof video, or a
                concurrent writer won the race.
            InvalidStateError: If the shipment is SEALED or FAILED.
            InvalidArgumentError: If the payload is not an acceptable video.
            UploadFailedError: If the object store call fails.
        """
        shipment = await self._lifecycle.get_shipment(shipment_id, organization_id)

        if await self._find_video_id(shipment_id) is not None:
            raise ConflictError(
                "Shipment already has a proof video",
                {"shipment_id": str(shipment_id)},
            )

        if shipment.status not in self._lifecycle.UPLOAD_ELIGIBLE:
            raise InvalidStateError(
                f"Cannot attach a proof video to a {shipment.status.value} shipment",
                {"shipment_id": str(shipment_id), "current_status": shipment.status.value},
            )

        extension, content_type = self._validate_payload(payload, filename, content_type)

        try:
            stored = await asyncio.to_thread(
                self._storage.store_proof_video,
                payload,
                extension=extension,
                content_type=content_type,
                metadata={"shipment-id": str(shipment_id), "uploaded-by": str(uploader_id)},
            )
        except StorageError as e:
            logger.error(
                "Proof video upload failed",
                extra={
                    "shipment_id": str(shipment_id),
                    "operation": e.operation,
                    "error": e.message,
                },
            )
            raise UploadFailedError(
                "Failed to store proof video",
                {"shipment_id": str(shipment_id)},
            ) from e

        try:
            video = await self._record_and_seal(
                shipment_id,
                organization_id,
                stored,
                uploader_id=uploader_id,
                content_type=content_type,
                filename=filename,
            )
            await self._session.commit()
        # Cancellation also leaves an unreferenced blob behind
        except BaseException:
            await self._session.rollback()
            await self._discard_blob(stored.key)
            raise

        logger.info(
            "Proof video attached and shipment sealed",
            extra={
                "shipment_id": str(shipment_id),
                "proof_video_id": str(video.proof_video_id),
                "sha256": stored.sha256_digest[:16] + "...",
                "size_bytes": stored.size_bytes,
            },
        )
        return video

    async def _record_and_seal(
        self,
        shipment_id: UUID,
        organization_id: UUID,
        stored: UploadResult,
        *,
        uploader_id: UUID,
        content_type: str,
        filename: str | None,
    ) -> ProofVideo:
        shipment = await self._lifecycle.get_shipment(
            shipment_id, organization_id, for_update=True
        )

        if await self._find_video_id(shipment_id) is not None:
            raise ConflictError(
                "Shipment received a proof video concurrently",
                {"shipment_id": str(shipment_id)},
            )
        if shipment.status not in self._lifecycle.UPLOAD_ELIGIBLE:
            raise ConflictError(
                f"Shipment became {shipment.status.value} during upload",
                {"shipment_id": str(shipment_id), "current_status": shipment.status.value},
            )

        video = ProofVideo(
            shipment_id=shipment_id,
            uploaded_by_id=uploader_id,
            video_url=stored.url,
            storage_key=stored.key,
            sha256=stored.sha256_digest,
            size_bytes=stored.size_bytes,
            content_type=content_type,
            original_filename=filename,
        )
        self._session.add(video)

        try:
            await self._session.flush()
            await self._lifecycle.seal(shipment)
        except IntegrityError as e:
            raise ConflictError(
                "Shipment already has a proof video",
                {"shipment_id": str(shipment_id)},
            ) from e

        return video

    async def _discard_blob(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._storage.delete, key)
        except StorageError:
            logger.warning(
                "Could not delete orphaned proof video blob",
                extra={"storage_key": key},
                exc_info=True,
            )
        else:
            logger.info("Deleted orphaned proof video blob", extra={"storage_key": key})

    def _validate_payload(
        self,
        payload: bytes,
        filename: str | None,
        content_type: str | None,
    ) -> tuple[str, str]:
        """Return (extension, content type) for an acceptable payload."""
        if not payload:
            raise InvalidArgumentError("Proof video payload is empty", {"size_bytes": 0})

        if len(payload) > self._settings.max_file_size_bytes:
            raise InvalidArgumentError(
                "Proof video exceeds the maximum allowed size",
                {
                    "size_bytes": len(payload),
                    "max_file_size_bytes": self._settings.max_file_size_bytes,
                },
            )

        extension = resolve_extension(filename, content_type)
        if extension not in self._settings.allowed_extensions:
            raise InvalidArgumentError(
                "Unsupported proof video format",
                {
                    "filename": filename,
                    "content_type": content_type,
                    "allowed_extensions": self._settings.allowed_extensions,
                },
            )

        if not content_type or content_type == "application/octet-stream":
            content_type = VIDEO_CONTENT_TYPES.get(extension, "application/octet-stream")

        return extension, content_type

    async def _find_video_id(self, shipment_id: UUID) -> UUID | None:
        result = await self._session.execute(
            select(ProofVideo.proof_video_id).where(ProofVideo.shipment_id == shipment_id)
        )
        return result.scalar_one_or_none()

    async def list_videos(self, organization_id: UUID) -> list[ProofVideo]:
        """All proof videos of the organization's shipments, newest first."""
        result = await self._session.execute(
            select(ProofVideo)
            .join(Shipment, ProofVideo.shipment_id == Shipment.shipment_id)
            .where(Shipment.organization_id == organization_id)
            .order_by(ProofVideo.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_video(self, proof_video_id: UUID, organization_id: UUID) -> ProofVideo:
        result = await self._session.execute(
            select(ProofVideo)
            .join(Shipment, ProofVideo.shipment_id == Shipment.shipment_id)
            .where(
                ProofVideo.proof_video_id == proof_video_id,
                Shipment.organization_id == organization_id,
            )
        )
        video = result.scalar_one_or_none()
        if video is None:
            raise NotFoundError("ProofVideo", proof_video_id)
        return video

    async def get_video_for_shipment(
        self, shipment_id: UUID, organization_id: UUID
    ) -> ProofVideo:
        result = await self._session.execute(
            select(ProofVideo)
            .join(Shipment, ProofVideo.shipment_id == Shipment.shipment_id)
            .where(
                ProofVideo.shipment_id == shipment_id,
                Shipment.organization_id == organization_id,
            )
        )
        video = result.scalar_one_or_none()
        if video is None:
            raise NotFoundError("ProofVideo for shipment", shipment_id)
        return video
