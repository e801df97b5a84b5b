"""
TourDesk Backend: Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between clients and backend.
Why:   Strict input validation, automatic serialization, and OpenAPI doc generation.
How:   FastAPI uses these models to serialize responses; the tour update route
       validates the client's non-file form fields through TourUpdateFields.

Wire naming:
    The API speaks camelCase (coverImage, galleryImages, maxGroupSize) while the
    ORM uses snake_case. An alias generator maps between them; `populate_by_name`
    lets the same models be built from ORM attributes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class TourUpdateFields(BaseModel):
    """
    What:  The client-supplied, non-image part of a tour update.
    Who:   Built by the upload acceptor from multipart text fields or a JSON body.

    Every field is optional; only fields the client actually sent are applied
    (`model_dump(exclude_unset=True)`). Unknown fields are rejected, including
    coverImage/galleryImages, which can only change through a file upload.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    name: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=1)
    max_group_size: Optional[int] = Field(default=None, ge=1)
    difficulty: Optional[str] = None
    ratings_average: Optional[float] = None
    ratings_quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[str] = None
    description: Optional[str] = None
    secret_tour: Optional[bool] = None

    @field_validator(
        "name", "duration", "max_group_size", "difficulty", "price",
        "summary", "description", "secret_tour",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        """Required columns may be changed, never cleared. priceDiscount may be cleared."""
        if v is None:
            raise ValueError("must not be null")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TourResponse(BaseModel):
    """
    What:  Full representation of a tour, including its image filenames.
    Who:   Returned inside the envelope by PATCH /api/v1/tours/{id}.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int
    name: str
    slug: Optional[str] = None
    duration: int
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: str
    cover_image: str = Field(description="Filename of the cover image inside the image directory")
    gallery_images: List[str] = Field(
        default_factory=list,
        description="Ordered gallery filenames inside the image directory",
    )
    secret_tour: bool = False
    created_at: datetime


class TourData(BaseModel):
    data: TourResponse


class TourEnvelope(BaseModel):
    """
    What:  Success envelope shared by the tour endpoints.
    Shape: {"status": "success", "data": {"data": {...tour...}}}
    """
    status: str = Field(default="success")
    data: TourData


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "unsupported_media_type",
            "message": "Not an image! Please upload only images.",
            "details": {"field": "coverImage", "content_type": "application/pdf"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    image_store: str = Field(description="Image directory: writable, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
