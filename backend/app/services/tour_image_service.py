"""
TourDesk Backend: Tour Image Service (Replacement Orchestrator)
==================================================================

What:  Replaces a tour's cover and gallery images as part of a tour update.
Why:   The record must never point at a file that isn't there. New files have
       to exist before the record names them, and old files may only go away
       once the record has stopped naming them.
How:   Composes ImageTranscoder, ImageStore and TourStore in a fixed order.
Who:   Called by the PATCH /api/v1/tours/{id} route handler.

Orchestration Flow:
    ┌──────────┐   ┌──────────────┐   ┌─────────┐   ┌──────────┐   ┌──────────┐
    │  Accept  │──▶│ Transcode &  │──▶│  Merge  │──▶│  Update  │──▶│ Delete   │
    │ (upload) │   │ store (new)  │   │ payload │   │ (commit) │   │ old files│
    └──────────┘   └──────────────┘   └─────────┘   └──────────┘   └──────────┘

    Failure at each step:
    - Accept:    400, nothing written
    - Transcode: ImageProcessingError (500), record untouched; files already
                 written by sibling uploads stay as unreferenced orphans
    - Update:    NotFoundError (404) / UpdateFailedError (500); no deletions,
                 the "before" files remain the live ones
    - Delete:    never fails the request; each failure is a CleanupWarning that
                 is logged and dropped

    A crash between any two steps leaves, at worst, an orphaned file on disk.

Known limitation:
    Two concurrent updates of the same tour can read the same "before"
    snapshot; the slower one may then delete files the faster one just wrote.
    No per-record locking is applied here.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    CleanupWarning,
    ImageProcessingError,
    NotFoundError,
)
from app.models.tour import Tour
from app.schemas.tour import TourUpdateFields
from app.services.image_store import ImageStore, image_store
from app.services.image_transcoder import ImageTranscoder, image_transcoder
from app.services.tour_store import ImageSnapshot, TourStore, tour_store
from app.services.upload_service import TourImageUpload

logger = logging.getLogger(__name__)

COVER_ROLE = "cover"


@dataclass(frozen=True)
class ImageChanges:
    """
    Filenames produced by this request's uploads.

    None means "not part of this request"; the existing image is left alone.
    An empty gallery tuple is never produced by uploads (no gallery files means
    gallery is None), but would legitimately mean "clear the gallery".
    """

    cover: Optional[str] = None
    gallery: Optional[Tuple[str, ...]] = None

    @property
    def is_empty(self) -> bool:
        return self.cover is None and self.gallery is None


@dataclass(frozen=True)
class TourUpdatePayload:
    """Client fields plus image changes: everything one update writes."""

    fields: TourUpdateFields = field(default_factory=TourUpdateFields)
    images: ImageChanges = field(default_factory=ImageChanges)

    def to_record_values(self) -> Dict[str, Any]:
        """Column → value for every field that was part of the request, and nothing else."""
        values = self.fields.model_dump(exclude_unset=True)
        if self.images.cover is not None:
            values["cover_image"] = self.images.cover
        if self.images.gallery is not None:
            values["gallery_images"] = list(self.images.gallery)
        return values


def request_timestamp() -> int:
    """Milliseconds since the epoch; captured once per request and shared by all its files."""
    return int(time.time() * 1000)


def build_image_name(tour_id: int, timestamp: int, role: Union[str, int], extension: str) -> str:
    """
    tour-<id>-<timestamp>-cover.<ext> for the cover,
    tour-<id>-<timestamp>-<index>.<ext> (1-based) for gallery images.
    """
    return f"tour-{tour_id}-{timestamp}-{role}.{extension}"


def compute_deletions(
    before: ImageSnapshot,
    images: ImageChanges,
    after_cover: Optional[str],
    after_gallery: Sequence[str],
) -> List[str]:
    """
    Decide which previously referenced files the update orphaned.

    - Cover in the request and changed → the old cover goes.
    - Gallery in the request → every old gallery name not in the new list goes.
    A name still referenced anywhere by the updated record is never deleted.
    """
    still_referenced = set(after_gallery)
    if after_cover:
        still_referenced.add(after_cover)

    doomed: List[str] = []

    if images.cover is not None and before.cover_image and before.cover_image != after_cover:
        doomed.append(before.cover_image)

    if images.gallery is not None:
        for name in before.gallery_images:
            if name and name not in doomed:
                doomed.append(name)

    return [name for name in doomed if name not in still_referenced]


class TourImageService:
    """
    Business logic for replacing tour images during an update.

    Stateless apart from its collaborators, which are injectable so tests can
    substitute a temporary image directory or mocks.
    """

    def __init__(
        self,
        store: Optional[ImageStore] = None,
        transcoder: Optional[ImageTranscoder] = None,
        tours: Optional[TourStore] = None,
    ):
        self.store = store or image_store
        self.transcoder = transcoder or image_transcoder
        self.tours = tours or tour_store

    # ── Transcode-and-Store ───────────────────────────────────────────────

    async def transcode_and_store(
        self,
        content: bytes,
        tour_id: int,
        timestamp: int,
        role: Union[str, int],
    ) -> str:
        """
        Encode one buffer per the image policy and write it durably.

        Returns the filename written; the file is on stable storage on return.
        """
        encoded = await self.transcoder.encode(content)
        filename = build_image_name(tour_id, timestamp, role, self.transcoder.policy.extension)
        try:
            await self.store.write_file(filename, encoded)
        except (OSError, ValueError) as e:
            logger.error("Failed to store image %s: %s", filename, str(e))
            raise ImageProcessingError(
                message="Failed to save uploaded image. Please try again.",
                context={"filename": filename, "error": str(e)},
            ) from e
        return filename

    async def process_uploads(
        self,
        tour_id: int,
        upload: TourImageUpload,
        timestamp: int,
    ) -> ImageChanges:
        """
        Transcode and store every uploaded image concurrently.

        The cover and all gallery images run side by side; the gallery result
        keeps upload order. If any file fails, the whole step fails and no
        filename is returned.

        Raises:
            ImageProcessingError: at least one image could not be encoded or written.
        """
        if upload.is_empty:
            return ImageChanges()

        jobs = []
        if upload.cover is not None:
            jobs.append(self.transcode_and_store(upload.cover.content, tour_id, timestamp, COVER_ROLE))
        jobs.extend(
            self.transcode_and_store(image.content, tour_id, timestamp, index)
            for index, image in enumerate(upload.gallery, start=1)
        )

        # Wait for every job, so no write is still running once we report failure
        results = await asyncio.gather(*jobs, return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for failure in failures:
                if not isinstance(failure, Exception):
                    raise failure
            written = [r for r in results if isinstance(r, str)]
            logger.warning(
                "Tour %s: %d of %d images failed; %d written file(s) left unreferenced: %s",
                tour_id, len(failures), len(results), len(written), written,
            )
            first = failures[0]
            if isinstance(first, ImageProcessingError):
                raise first
            raise ImageProcessingError(
                context={"error_type": type(first).__name__, "error": str(first)},
            ) from first

        names: List[str] = list(results)
        cover = names.pop(0) if upload.cover is not None else None
        gallery = tuple(names) if upload.gallery else None
        logger.info("Tour %s: stored cover=%s gallery=%s", tour_id, cover, gallery)
        return ImageChanges(cover=cover, gallery=gallery)

    # ── Update Payload Merge ──────────────────────────────────────────────

    @staticmethod
    def merge_payload(fields: TourUpdateFields, images: ImageChanges) -> TourUpdatePayload:
        return TourUpdatePayload(fields=fields, images=images)

    # ── Record Update + Old-File Cleanup ──────────────────────────────────

    async def update_tour(
        self,
        db: AsyncSession,
        tour_id: int,
        payload: TourUpdatePayload,
    ) -> Tour:
        """
        Apply the payload, then delete the files it orphaned.

        Steps:
            1. Snapshot the current image names (NotFoundError if absent)
            2. Update and commit the record (UpdateFailedError if rejected)
            3. Compute the names the record no longer references
            4. Delete them concurrently, best-effort
            5. Return the updated record

        Raises:
            NotFoundError:     the tour does not exist
            UpdateFailedError: the record store rejected the write
        """
        before = await self.tours.find_by_id(db, tour_id)
        if before is None:
            raise NotFoundError(resource="tour", resource_id=str(tour_id))

        updated = await self.tours.update_by_id(db, tour_id, payload.to_record_values())

        doomed = compute_deletions(
            before,
            payload.images,
            updated.cover_image,
            updated.gallery_images or [],
        )
        if doomed:
            warnings = await self.delete_images(doomed)
            logger.info(
                "Tour %s: removed %d of %d replaced image(s)",
                tour_id, len(doomed) - len(warnings), len(doomed),
            )
        return updated

    async def delete_images(self, filenames: Sequence[str]) -> List[CleanupWarning]:
        """
        Delete every file concurrently and collect the outcomes.

        A file that is already gone counts as deleted. Any other failure is
        turned into a CleanupWarning, logged, and returned, never raised.
        Every deletion is attempted regardless of the others.
        """
        results = await asyncio.gather(
            *(self.store.delete_file(name) for name in filenames),
            return_exceptions=True,
        )

        warnings: List[CleanupWarning] = []
        for name, result in zip(filenames, results):
            if isinstance(result, Exception):
                warning = CleanupWarning(filename=name, reason=f"{type(result).__name__}: {result}")
                logger.warning("%s", warning.message)
                warnings.append(warning)
            elif isinstance(result, BaseException):
                raise result
        return warnings

    # ── Full Workflow ─────────────────────────────────────────────────────

    async def replace_images(
        self,
        db: AsyncSession,
        tour_id: int,
        upload: TourImageUpload,
        fields: TourUpdateFields,
        timestamp: Optional[int] = None,
    ) -> Tour:
        """
        Complete workflow for one PATCH request: store new images, update, clean up.

        The existence check up front keeps a request for an unknown tour free of
        side effects; the authoritative snapshot is still read in update_tour(),
        right before the write.
        """
        if not upload.is_empty and not await self.tours.exists(db, tour_id):
            raise NotFoundError(resource="tour", resource_id=str(tour_id))

        timestamp = timestamp if timestamp is not None else request_timestamp()
        images = await self.process_uploads(tour_id, upload, timestamp)
        payload = self.merge_payload(fields, images)
        return await self.update_tour(db, tour_id, payload)


# ── Singleton Instance ────────────────────────────────────────────────────
tour_image_service = TourImageService()


def get_tour_image_service() -> TourImageService:
    """FastAPI dependency; overridden in tests to point at a temporary image directory."""
    return tour_image_service
