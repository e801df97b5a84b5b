"""
TourDesk Backend: Tour Update Route Handler
==============================================

What:  Handles PATCH /api/v1/tours/{id}: field updates plus image replacement.
Why:   The only tour write that touches the image directory.
How:   Accepts the body (multipart or JSON), delegates to TourImageService,
       returns the updated tour in the standard envelope.

Request Flow:
    1. UploadService validates files and fields, buffering images in memory
    2. One timestamp is captured for the whole request
    3. TourImageService: transcode & store → update record → delete old files
    4. Return 200 with {"status": "success", "data": {"data": tour}}

Example:
    curl -X PATCH http://localhost:8000/api/v1/tours/1 \\
         -F coverImage=@cover.png \\
         -F galleryImages=@a.jpg -F galleryImages=@b.jpg \\
         -F price=497
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.tour import ErrorResponse, TourData, TourEnvelope, TourResponse
from app.services.tour_image_service import (
    TourImageService,
    get_tour_image_service,
    request_timestamp,
)
from app.services.upload_service import upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Tours"])


@router.patch(
    "/tours/{tour_id}",
    response_model=TourEnvelope,
    responses={
        200: {"description": "Tour updated", "model": TourEnvelope},
        400: {"description": "Non-image upload or invalid fields", "model": ErrorResponse},
        404: {"description": "Tour not found", "model": ErrorResponse},
        500: {"description": "Image processing or record update failed", "model": ErrorResponse},
    },
    summary="Update a tour and replace its images",
    description=(
        "Updates tour fields and, when files are attached, replaces the cover "
        "(`coverImage`, 1 file) and/or the whole gallery (`galleryImages`, up to 3 files). "
        "New images are stored before the tour is updated; replaced images are "
        "deleted only after the update succeeded."
    ),
)
async def update_tour(
    tour_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    service: TourImageService = Depends(get_tour_image_service),
) -> TourEnvelope:
    accepted = await upload_service.accept(request)

    images = accepted.images
    logger.info(
        "Received tour update: tour_id=%s cover=%s gallery=%d fields=%s",
        tour_id,
        images.cover is not None,
        len(images.gallery),
        sorted(accepted.fields.model_fields_set),
    )

    tour = await service.replace_images(
        db=db,
        tour_id=tour_id,
        upload=images,
        fields=accepted.fields,
        timestamp=request_timestamp(),
    )

    return TourEnvelope(data=TourData(data=TourResponse.model_validate(tour)))
