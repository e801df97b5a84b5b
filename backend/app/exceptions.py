"""
TourDesk Backend: Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and the upload acceptor; caught by global handlers.

Exception Hierarchy:
    TourDeskError (base)
    ├── ValidationError                → 400 Bad Request (client can fix)
    │   └── UnsupportedMediaTypeError  → 400 Bad Request (non-image upload)
    ├── NotFoundError                  → 404 Not Found
    ├── ImageProcessingError           → 500 Internal Server Error
    ├── UpdateFailedError              → 500 Internal Server Error
    └── CleanupWarning                 → never raised to the client; logged only

Propagation:
    Everything up to and including the record update aborts the request with
    no partial effect. CleanupWarning only ever appears as a collected result
    of the delete step, after the update has already succeeded.
"""

from typing import Any, Dict, Optional


class TourDeskError(Exception):
    """
    Base exception for all TourDesk application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client,
                  except where a handler chooses to expose it as `details`)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = dict(context or {})
        super().__init__(self.message)


class ValidationError(TourDeskError):
    """
    Raised when client input fails validation.

    When:    Unknown or forbidden fields, too many files, oversized files.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnsupportedMediaTypeError(ValidationError):
    """
    Raised when an uploaded file does not declare an image content type.

    When:    Before any transcoding, storing or record update takes place.
    HTTP:    400 Bad Request (the whole request is rejected, no partial acceptance)
    """

    def __init__(
        self,
        content_type: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["content_type"] = content_type or "unknown"
        super().__init__(
            message="Not an image! Please upload only images.",
            field=field,
            context=ctx,
        )
        self.content_type = content_type


class NotFoundError(TourDeskError):
    """
    Raised when a requested resource does not exist.

    When:    PATCH /api/v1/tours/{id} with an id that has no record.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"No {resource} found with ID '{resource_id}'"
        ctx = dict(context or {})
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ImageProcessingError(TourDeskError):
    """
    Raised when transcoding or writing an uploaded image fails.

    When:    Undecodable image bytes, encoder failure, disk full, permission denied.
    HTTP:    500 Internal Server Error

    Recovery:
        The record has not been touched yet. Files written by sibling uploads
        of the same request may stay on disk as orphans; none of them is
        referenced by any record.
    """

    def __init__(
        self,
        message: str = "Failed to process uploaded image. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpdateFailedError(TourDeskError):
    """
    Raised when the record store rejects the update.

    When:    Record validation failure, unique constraint violation, or the
             record vanished between the snapshot read and the write.
    HTTP:    500 Internal Server Error, carrying the store's own message

    Guarantee:
        No image file is deleted when this is raised; the files referenced by
        the "before" snapshot are still the live ones.
    """

    def __init__(
        self,
        message: str = "Failed to update the tour",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CleanupWarning(TourDeskError):
    """
    A previously referenced image could not be deleted.

    Never raised past the image service: the delete step collects these as
    results, logs them, and still answers the request successfully. The file
    stays on disk as an orphan.
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["filename"] = filename
        ctx["reason"] = reason
        super().__init__(
            message=f"Could not delete old image '{filename}': {reason}",
            context=ctx,
        )
        self.filename = filename
        self.reason = reason
