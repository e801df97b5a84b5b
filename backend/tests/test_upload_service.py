"""
TourDesk Backend: Upload Acceptor Unit Tests
===============================================

What:  Tests for UploadService: file classification, limits, and field validation.
How:   Starlette FormData / UploadFile objects built in memory; raw Request
       objects for whole bodies, multipart ones encoded by hand.

What we test:
    ✅ coverImage / galleryImages / images are sorted into cover and gallery
    ✅ A non-image anywhere rejects the whole request before reading bytes
    ✅ Too many files, unknown file fields, empty and oversized files → 400
    ✅ Text fields are validated; image names can't be set as text
    ✅ JSON and empty bodies
    ✅ Multipart parts stay in memory; oversized ones stop the parser
    ✅ Oversized files are never read further than one byte past the limit
"""

import json
import tempfile
from io import BytesIO
from unittest.mock import patch

import pytest
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.requests import Request

from app.exceptions import UnsupportedMediaTypeError, ValidationError
from app.services.upload_service import UploadService


def upload(content: bytes, content_type: str = "image/png", filename: str = "photo.png") -> UploadFile:
    return UploadFile(
        file=BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def raw_request(body: bytes, content_type: str = "") -> Request:
    headers = [(b"content-type", content_type.encode())] if content_type else []
    scope = {
        "type": "http",
        "method": "PATCH",
        "path": "/api/v1/tours/1",
        "query_string": b"",
        "headers": headers,
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


BOUNDARY = "tourdesk-boundary"


def multipart_body(parts) -> bytes:
    """Encode (field, filename, content_type, content) tuples as multipart/form-data."""
    body = b""
    for name, filename, content_type, content in parts:
        body += f"--{BOUNDARY}\r\n".encode()
        body += f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
        body += f"Content-Type: {content_type}\r\n\r\n".encode()
        body += content + b"\r\n"
    return body + f"--{BOUNDARY}--\r\n".encode()


def multipart_request(parts) -> Request:
    return raw_request(multipart_body(parts), f"multipart/form-data; boundary={BOUNDARY}")


class CountingBytesIO(BytesIO):
    """BytesIO that records how many bytes were handed out by read()."""

    def __init__(self, content: bytes):
        super().__init__(content)
        self.bytes_read = 0

    def read(self, size=-1):
        data = super().read(size)
        self.bytes_read += len(data)
        return data


@pytest.fixture
def service():
    return UploadService(max_file_size=1_048_576, max_gallery_images=3)


class TestAcceptForm:
    """Tests for multipart classification and limits."""

    @pytest.mark.asyncio
    async def test_cover_and_gallery_in_upload_order(self, service):
        form = FormData([
            ("galleryImages", upload(b"g1")),
            ("coverImage", upload(b"cover", "image/jpeg")),
            ("galleryImages", upload(b"g2")),
            ("galleryImages", upload(b"g3", "image/webp")),
        ])

        accepted = await service.accept_form(form)

        assert accepted.images.cover.content == b"cover"
        assert accepted.images.cover.content_type == "image/jpeg"
        assert [g.content for g in accepted.images.gallery] == [b"g1", b"g2", b"g3"]
        assert accepted.fields.model_fields_set == set()

    @pytest.mark.asyncio
    async def test_legacy_images_field_counts_as_gallery(self, service):
        form = FormData([("images", upload(b"a")), ("galleryImages", upload(b"b"))])

        accepted = await service.accept_form(form)

        assert accepted.images.cover is None
        assert [g.field for g in accepted.images.gallery] == ["images", "galleryImages"]

    @pytest.mark.asyncio
    async def test_text_fields_are_validated(self, service):
        form = FormData([("price", "497"), ("maxGroupSize", "12"), ("secretTour", "true")])

        accepted = await service.accept_form(form)

        assert accepted.images.is_empty
        assert accepted.fields.model_dump(exclude_unset=True) == {
            "price": 497.0,
            "max_group_size": 12,
            "secret_tour": True,
        }

    @pytest.mark.asyncio
    async def test_non_image_rejects_whole_request(self, service):
        pdf = upload(b"%PDF-1.4", "application/pdf", "brochure.pdf")
        form = FormData([
            ("coverImage", upload(b"cover")),
            ("galleryImages", pdf),
        ])

        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            await service.accept_form(form)

        assert exc_info.value.message == "Not an image! Please upload only images."
        assert exc_info.value.context["field"] == "galleryImages"
        assert exc_info.value.context["content_type"] == "application/pdf"

    @pytest.mark.asyncio
    async def test_too_many_cover_files(self, service):
        form = FormData([("coverImage", upload(b"a")), ("coverImage", upload(b"b"))])

        with pytest.raises(ValidationError, match="Only one file"):
            await service.accept_form(form)

    @pytest.mark.asyncio
    async def test_too_many_gallery_files_across_both_names(self, service):
        form = FormData([
            ("galleryImages", upload(b"1")),
            ("galleryImages", upload(b"2")),
            ("images", upload(b"3")),
            ("images", upload(b"4")),
        ])

        with pytest.raises(ValidationError) as exc_info:
            await service.accept_form(form)

        assert exc_info.value.context["received"] == 4
        assert exc_info.value.context["max"] == 3

    @pytest.mark.asyncio
    async def test_unexpected_file_field(self, service):
        form = FormData([("avatar", upload(b"x"))])

        with pytest.raises(ValidationError, match="Unexpected file field 'avatar'"):
            await service.accept_form(form)

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, service):
        form = FormData([("coverImage", upload(b""))])

        with pytest.raises(ValidationError, match="empty"):
            await service.accept_form(form)

    @pytest.mark.asyncio
    async def test_oversized_file_rejected(self):
        service = UploadService(max_file_size=1_048_576)
        form = FormData([("coverImage", upload(b"x" * (1_048_576 + 1)))])

        with pytest.raises(ValidationError, match="exceeds maximum"):
            await service.accept_form(form)

    @pytest.mark.asyncio
    async def test_oversized_file_read_stops_past_limit(self):
        service = UploadService(max_file_size=1024)
        source = CountingBytesIO(b"x" * 10_000)
        form = FormData([("coverImage", UploadFile(file=source, headers=Headers({"content-type": "image/png"})))])

        with pytest.raises(ValidationError, match="exceeds maximum"):
            await service.accept_form(form)

        assert source.bytes_read == 1025

    @pytest.mark.asyncio
    async def test_oversized_declared_size_rejected_without_reading(self):
        service = UploadService(max_file_size=1024)
        source = CountingBytesIO(b"x" * 10_000)
        cover = UploadFile(file=source, size=10_000, headers=Headers({"content-type": "image/png"}))

        with pytest.raises(ValidationError) as exc_info:
            await service.accept_form(FormData([("coverImage", cover)]))

        assert exc_info.value.context["actual_size"] == 10_000
        assert source.bytes_read == 0

    @pytest.mark.asyncio
    async def test_file_at_limit_accepted(self):
        service = UploadService(max_file_size=1024)
        form = FormData([("coverImage", upload(b"x" * 1024))])

        accepted = await service.accept_form(form)

        assert accepted.images.cover.size == 1024

    @pytest.mark.asyncio
    async def test_image_name_as_text_rejected(self, service):
        form = FormData([("coverImage", "tour-1-1-cover.jpeg")])

        with pytest.raises(ValidationError, match="only be changed by uploading"):
            await service.accept_form(form)

    @pytest.mark.asyncio
    async def test_unknown_text_field_rejected(self, service):
        form = FormData([("nickname", "Hiker")])

        with pytest.raises(ValidationError) as exc_info:
            await service.accept_form(form)

        assert exc_info.value.message == "Invalid tour update fields."
        assert exc_info.value.context["errors"][0]["field"] == "nickname"


class TestValidateFields:

    def test_snake_and_camel_case_accepted(self, service):
        fields = service.validate_fields({"max_group_size": 10, "ratingsAverage": 4.2})
        assert fields.max_group_size == 10
        assert fields.ratings_average == 4.2

    def test_required_column_cannot_be_nulled(self, service):
        with pytest.raises(ValidationError):
            service.validate_fields({"name": None})

    def test_price_discount_can_be_cleared(self, service):
        fields = service.validate_fields({"priceDiscount": None})
        assert fields.model_dump(exclude_unset=True) == {"price_discount": None}

    def test_gallery_images_as_text_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_fields({"galleryImages": ["a.jpeg"]})
        assert exc_info.value.context["fields"] == ["galleryImages"]


class TestAccept:
    """Tests for the encodings accepted besides multipart."""

    @pytest.mark.asyncio
    async def test_json_body(self, service):
        request = raw_request(json.dumps({"price": 500}).encode(), "application/json")

        accepted = await service.accept(request)

        assert accepted.images.is_empty
        assert accepted.fields.price == 500

    @pytest.mark.asyncio
    async def test_json_array_rejected(self, service):
        request = raw_request(b"[1, 2]", "application/json")

        with pytest.raises(ValidationError, match="JSON object"):
            await service.accept(request)

    @pytest.mark.asyncio
    async def test_malformed_json_rejected(self, service):
        request = raw_request(b"{price:", "application/json")

        with pytest.raises(ValidationError, match="not valid JSON"):
            await service.accept(request)

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_update(self, service):
        accepted = await service.accept(raw_request(b""))

        assert accepted.images.is_empty
        assert accepted.fields.model_fields_set == set()

    @pytest.mark.asyncio
    async def test_unsupported_body_type(self, service):
        request = raw_request(b"price=1", "text/plain")

        with pytest.raises(ValidationError, match="Unsupported request body"):
            await service.accept(request)

    @pytest.mark.asyncio
    async def test_urlencoded_body(self, service):
        request = raw_request(b"price=450&difficulty=medium", "application/x-www-form-urlencoded")

        accepted = await service.accept(request)

        assert accepted.fields.price == 450
        assert accepted.fields.difficulty == "medium"


class TestMultipartBuffering:
    """Tests for multipart bodies parsed straight from the request stream."""

    @pytest.mark.asyncio
    async def test_large_part_stays_in_memory(self):
        service = UploadService(max_file_size=5 * 1024 * 1024)
        cover = b"c" * (2 * 1024 * 1024)
        request = multipart_request([
            ("coverImage", "cover.png", "image/png", cover),
            ("galleryImages", "a.png", "image/png", b"g1"),
        ])

        with patch.object(tempfile.SpooledTemporaryFile, "rollover") as rollover:
            accepted = await service.accept(request)

        assert rollover.call_count == 0
        assert accepted.images.cover.content == cover
        assert accepted.images.cover.filename == "cover.png"
        assert [g.content for g in accepted.images.gallery] == [b"g1"]

    @pytest.mark.asyncio
    async def test_oversized_part_rejected_while_parsing(self):
        service = UploadService(max_file_size=1024 * 1024)
        request = multipart_request([
            ("coverImage", "cover.png", "image/png", b"c" * (3 * 1024 * 1024)),
        ])

        with patch.object(tempfile.SpooledTemporaryFile, "rollover") as rollover:
            with pytest.raises(ValidationError, match="exceeds maximum") as exc_info:
                await service.accept(request)

        assert rollover.call_count == 0
        assert exc_info.value.context["field"] == "coverImage"

    @pytest.mark.asyncio
    async def test_non_image_part_rejected(self, service):
        request = multipart_request([
            ("coverImage", "notes.txt", "text/plain", b"hello"),
        ])

        with pytest.raises(UnsupportedMediaTypeError):
            await service.accept(request)

    @pytest.mark.asyncio
    async def test_malformed_multipart_is_validation_error(self, service):
        request = raw_request(b"--x\r\n", "multipart/form-data")

        with pytest.raises(ValidationError, match="Missing boundary"):
            await service.accept(request)
