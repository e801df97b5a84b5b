"""
TourDesk Backend: Tour Record Store
======================================

What:  The narrow read/update interface the image service needs from the database.
Why:   Keeps SQLAlchemy out of the replacement protocol; the protocol only needs
       "read the current image names" and "apply this update, validated".
How:   Async SQLAlchemy queries on the Tour model; record-level validation runs
       before commit, and every store-side rejection becomes UpdateFailedError.

Durability boundary:
    update_by_id() commits. When it returns, the new image names are the
    authoritative ones, and only then may old files be deleted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import UpdateFailedError
from app.models.tour import Tour

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageSnapshot:
    """The image references of a tour at one instant."""

    cover_image: Optional[str]
    gallery_images: Tuple[str, ...] = ()


class TourStore:
    """Record store operations used by the tour image workflow."""

    async def exists(self, db: AsyncSession, tour_id: int) -> bool:
        result = await db.execute(select(Tour.id).where(Tour.id == tour_id))
        return result.scalar_one_or_none() is not None

    async def find_by_id(self, db: AsyncSession, tour_id: int) -> Optional[ImageSnapshot]:
        """
        Read only the image columns of a tour (projection: cover + gallery).

        Returns None when the tour does not exist.
        """
        result = await db.execute(
            select(Tour.cover_image, Tour.gallery_images).where(Tour.id == tour_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return ImageSnapshot(
            cover_image=row.cover_image,
            gallery_images=tuple(row.gallery_images or ()),
        )

    async def update_by_id(
        self,
        db: AsyncSession,
        tour_id: int,
        values: Dict[str, Any],
    ) -> Tour:
        """
        Apply `values` to the tour, validate the resulting record, and commit.

        Returns:
            The updated Tour.

        Raises:
            UpdateFailedError: the tour disappeared since the snapshot read, the
                record fails validation, or the database rejects the write
                (e.g. duplicate tour name). The transaction is rolled back.
        """
        tour = await db.get(Tour, tour_id, populate_existing=True)
        if tour is None:
            # Deleted concurrently between the snapshot read and this write
            raise UpdateFailedError(
                message="Failed to update the tour",
                context={"tour_id": tour_id, "reason": "record no longer exists"},
            )

        for column, value in values.items():
            setattr(tour, column, value)

        errors = tour.validation_errors()
        if errors:
            await db.rollback()
            logger.info("Tour %s update rejected by validation: %s", tour_id, errors)
            raise UpdateFailedError(
                message="Invalid input data. " + ". ".join(errors),
                context={"tour_id": tour_id, "errors": errors},
            )

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.info("Tour %s update violated a constraint: %s", tour_id, str(e.orig))
            raise UpdateFailedError(
                message="Duplicate field value. Please use another value.",
                context={"tour_id": tour_id, "error_type": type(e).__name__},
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error updating tour %s: %s", tour_id, str(e), exc_info=True)
            raise UpdateFailedError(
                message="Failed to update the tour",
                context={"tour_id": tour_id, "error_type": type(e).__name__},
            )

        logger.info("Tour %s updated: %s", tour_id, sorted(values))
        return tour


# ── Singleton Instance ────────────────────────────────────────────────────
tour_store = TourStore()
