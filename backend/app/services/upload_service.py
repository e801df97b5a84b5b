"""
TourDesk Backend: Upload Acceptor
====================================

What:  Turns an incoming tour update request into in-memory image buffers plus
       validated update fields.
Why:   Everything the client sends is checked here, before any transcoding,
       disk write or database access happens.
How:   Parses the multipart (or urlencoded / JSON) body, sorts file parts by
       field name, checks counts and declared content types, reads the bytes
       into memory, and validates the remaining text fields.
Who:   Called by the PATCH /api/v1/tours/{id} route handler.

Accepted fields:
    coverImage     at most 1 file
    galleryImages  at most MAX_GALLERY_IMAGES files ("images" is accepted as
                   the legacy name of the same field; both count together)
    anything else  a text field forwarded to TourUpdateFields

Rejection rules (whole request fails, nothing is kept):
    - a file whose declared content type is not image/*  → UnsupportedMediaTypeError
    - a file under any other field name                   → ValidationError
    - too many files for a field                          → ValidationError
    - a file larger than MAX_FILE_SIZE, or empty          → ValidationError
    - coverImage/galleryImages sent as text               → ValidationError

Memory only:
    Uploaded bytes never touch temporary disk storage. Multipart bodies are
    parsed by InMemoryMultiPartParser, which stops a file part as soon as it
    grows past MAX_FILE_SIZE and keeps the spool threshold at that same size,
    so Starlette's SpooledTemporaryFile never rolls over to a file.
"""

import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import Request

from app.config import settings
from app.exceptions import UnsupportedMediaTypeError, ValidationError
from app.schemas.tour import TourUpdateFields

logger = logging.getLogger(__name__)

COVER_FIELD = "coverImage"
GALLERY_FIELDS = ("galleryImages", "images")

# Names that may only change through a file upload, never as text
IMAGE_FIELD_NAMES = {COVER_FIELD, *GALLERY_FIELDS, "cover_image", "gallery_images"}

# Hard ceiling handed to the multipart parser; the per-field limits below are stricter
MAX_MULTIPART_FILES = 16


@dataclass(frozen=True)
class UploadedImage:
    """One accepted file, held entirely in memory for the duration of the request."""

    field: str
    filename: Optional[str]
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class TourImageUpload:
    """The accepted image parts of one request, in upload order."""

    cover: Optional[UploadedImage] = None
    gallery: Tuple[UploadedImage, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.cover is None and not self.gallery


@dataclass(frozen=True)
class AcceptedUpdate:
    images: TourImageUpload = field(default_factory=TourImageUpload)
    fields: TourUpdateFields = field(default_factory=TourUpdateFields)


def _is_image(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.lower().startswith("image/")


def file_too_large(key: str, size: int, max_file_size: int) -> ValidationError:
    max_mb = max_file_size / (1024 * 1024)
    return ValidationError(
        message=f"File size ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
        field=key,
        context={"max_size_mb": max_mb, "actual_size": size},
    )


class InMemoryMultiPartParser(MultiPartParser):
    """
    Starlette's multipart parser with every file part held in memory.

    The running size of the current file part is checked in the parser
    callback, before its bytes are queued for writing. Since no part can exceed
    max_file_size and the spool threshold equals max_file_size, the spooled
    buffer behind each UploadFile never rolls over to disk.
    """

    def __init__(
        self,
        headers: Headers,
        stream: AsyncGenerator[bytes, None],
        *,
        max_file_size: int,
        max_files: Union[int, float] = MAX_MULTIPART_FILES,
        max_fields: Union[int, float] = 1000,
    ):
        super().__init__(headers, stream, max_files=max_files, max_fields=max_fields)
        self.max_file_size = max_file_size
        self.spool_max_size = max_file_size
        self._current_file_size = 0

    def on_part_begin(self) -> None:
        super().on_part_begin()
        self._current_file_size = 0

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._current_part.file is not None:
            self._current_file_size += end - start
            if self._current_file_size > self.max_file_size:
                # Propagates out of parse(), which closes every buffer opened so far
                raise file_too_large(
                    self._current_part.field_name, self._current_file_size, self.max_file_size
                )
        super().on_part_data(data, start, end)


class UploadService:
    """
    Validates and buffers the body of a tour update request.

    Limits come from settings but can be overridden per instance (tests).
    """

    def __init__(
        self,
        max_file_size: Optional[int] = None,
        max_gallery_images: Optional[int] = None,
    ):
        self.max_file_size = max_file_size or settings.max_file_size
        self.max_gallery_images = max_gallery_images or settings.max_gallery_images

    async def accept(self, request: Request) -> AcceptedUpdate:
        """
        Parse and validate the request body, whatever its encoding.

        multipart/form-data goes through InMemoryMultiPartParser;
        application/x-www-form-urlencoded through Starlette's form parser;
        application/json is accepted for updates that carry no files; an
        empty body is an update with no fields.
        """
        content_type = request.headers.get("content-type", "").lower()

        if content_type.startswith("multipart/form-data"):
            form = await self.parse_multipart(request)
            try:
                return await self.accept_form(form)
            finally:
                await form.close()

        if content_type.startswith("application/x-www-form-urlencoded"):
            form = await request.form()
            try:
                return await self.accept_form(form)
            finally:
                await form.close()

        body = await request.body()
        if not body.strip():
            return AcceptedUpdate()

        if content_type.startswith("application/json"):
            try:
                payload = json.loads(body)
            except ValueError:
                raise ValidationError(message="Request body is not valid JSON")
            if not isinstance(payload, dict):
                raise ValidationError(message="Request body must be a JSON object")
            return AcceptedUpdate(fields=self.validate_fields(payload))

        raise ValidationError(
            message="Unsupported request body. Send multipart/form-data or application/json.",
            context={"content_type": content_type or "none"},
        )

    async def parse_multipart(self, request: Request) -> FormData:
        parser = InMemoryMultiPartParser(
            request.headers,
            request.stream(),
            max_file_size=self.max_file_size,
        )
        async with aclosing(parser.stream):
            try:
                return await parser.parse()
            except MultiPartException as e:
                raise ValidationError(message=e.message)

    async def accept_form(self, form: FormData) -> AcceptedUpdate:
        """
        Split a parsed form into image buffers and text fields.

        Two passes: every file part is classified and its declared content type
        checked first, so a non-image anywhere in the request rejects the
        request before a single byte is buffered.
        """
        cover_parts: List[Tuple[str, UploadFile]] = []
        gallery_parts: List[Tuple[str, UploadFile]] = []
        text_fields: Dict[str, Any] = {}

        # ── Pass 1: classify and check declared types ─────────────────────
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == COVER_FIELD:
                    cover_parts.append((key, value))
                elif key in GALLERY_FIELDS:
                    gallery_parts.append((key, value))
                else:
                    raise ValidationError(
                        message=f"Unexpected file field '{key}'. "
                                f"Upload images as '{COVER_FIELD}' or '{GALLERY_FIELDS[0]}'.",
                        field=key,
                    )
                if not _is_image(value.content_type):
                    logger.info(
                        "Rejected non-image upload: field=%s content_type=%s",
                        key, value.content_type,
                    )
                    raise UnsupportedMediaTypeError(content_type=value.content_type, field=key)
            else:
                text_fields[key] = value

        if len(cover_parts) > 1:
            raise ValidationError(
                message=f"Only one file may be uploaded as '{COVER_FIELD}'.",
                field=COVER_FIELD,
                context={"received": len(cover_parts)},
            )
        if len(gallery_parts) > self.max_gallery_images:
            raise ValidationError(
                message=f"At most {self.max_gallery_images} gallery images may be uploaded.",
                field=GALLERY_FIELDS[0],
                context={"received": len(gallery_parts), "max": self.max_gallery_images},
            )

        fields = self.validate_fields(text_fields)

        # ── Pass 2: buffer the bytes ──────────────────────────────────────
        cover = await self._read(*cover_parts[0]) if cover_parts else None
        gallery = tuple([await self._read(key, upload) for key, upload in gallery_parts])

        return AcceptedUpdate(images=TourImageUpload(cover=cover, gallery=gallery), fields=fields)

    async def _read(self, key: str, upload: UploadFile) -> UploadedImage:
        if upload.size is not None and upload.size > self.max_file_size:
            raise file_too_large(key, upload.size, self.max_file_size)

        # One byte past the limit is enough to tell an oversized part apart
        content = await upload.read(self.max_file_size + 1)
        if not content:
            raise ValidationError(message=f"Uploaded file in '{key}' is empty.", field=key)
        if len(content) > self.max_file_size:
            raise file_too_large(key, len(content), self.max_file_size)
        return UploadedImage(
            field=key,
            filename=upload.filename,
            content_type=upload.content_type or "",
            content=content,
        )

    def validate_fields(self, raw: Dict[str, Any]) -> TourUpdateFields:
        """Validate the client's non-image fields; image names are never accepted as text."""
        forbidden = sorted(IMAGE_FIELD_NAMES.intersection(raw))
        if forbidden:
            raise ValidationError(
                message="Tour images can only be changed by uploading image files.",
                field=forbidden[0],
                context={"fields": forbidden},
            )
        try:
            return TourUpdateFields.model_validate(raw)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError(
                message="Invalid tour update fields.",
                context={"errors": errors},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
upload_service = UploadService()
