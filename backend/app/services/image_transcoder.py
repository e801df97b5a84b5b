"""
TourDesk Backend: Image Transcoder
=====================================

What:  Converts an uploaded image buffer into the canonical stored encoding.
Why:   Every stored tour image shares one resolution, format and quality, no
       matter what the client uploaded (PNG screenshots, 40MP JPEGs, WebP...).
How:   Pillow decodes the bytes, applies EXIF orientation, scales and
       center-crops to the policy resolution, and re-encodes.
Who:   Called by TourImageService for the cover and every gallery image.

Concurrency:
    Decoding and encoding are CPU-bound and release the GIL only partially.
    encode() runs the Pillow pipeline in a worker thread (asyncio.to_thread)
    so concurrent gallery transcodes don't stall the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps

from app.config import settings
from app.exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

# Pillow format name and file extension per configured encoding
_FORMATS = {
    "jpeg": ("JPEG", "jpeg"),
    "png": ("PNG", "png"),
    "webp": ("WEBP", "webp"),
}


@dataclass(frozen=True)
class ImagePolicy:
    """Canonical encoding applied to every stored image."""

    width: int
    height: int
    format: str
    quality: int

    @property
    def extension(self) -> str:
        return _FORMATS[self.format][1]

    @property
    def pillow_format(self) -> str:
        return _FORMATS[self.format][0]

    @classmethod
    def from_settings(cls) -> "ImagePolicy":
        return cls(
            width=settings.image_width,
            height=settings.image_height,
            format=settings.image_format,
            quality=settings.image_quality,
        )


class ImageTranscoder:
    """Decode → orient → resize/crop → re-encode, per a fixed ImagePolicy."""

    def __init__(self, policy: Optional[ImagePolicy] = None):
        self.policy = policy or ImagePolicy.from_settings()

    def _encode_sync(self, data: bytes) -> bytes:
        with Image.open(BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            # JPEG has no alpha channel; flatten palette/alpha modes
            if self.policy.format == "jpeg" and img.mode != "RGB":
                img = img.convert("RGB")
            # Fill the target box and crop the overflow (no letterboxing)
            img = ImageOps.fit(
                img,
                (self.policy.width, self.policy.height),
                method=Image.Resampling.LANCZOS,
            )
            buffer = BytesIO()
            save_options = {"quality": self.policy.quality}
            if self.policy.format == "jpeg":
                save_options["optimize"] = True
            img.save(buffer, format=self.policy.pillow_format, **save_options)
            return buffer.getvalue()

    async def encode(self, data: bytes) -> bytes:
        """
        Transcode raw upload bytes into the policy encoding.

        Raises:
            ImageProcessingError: the bytes are not a decodable image, or the
                encoder failed. The Pillow error is kept in context.
        """
        try:
            return await asyncio.to_thread(self._encode_sync, data)
        except Exception as e:
            # Pillow raises UnidentifiedImageError, OSError, ValueError and
            # DecompressionBombError depending on how the input is broken
            logger.warning("Image transcoding failed: %s: %s", type(e).__name__, str(e))
            raise ImageProcessingError(
                message="Could not process the uploaded image. Please upload a valid image file.",
                context={"error_type": type(e).__name__, "error": str(e)},
            ) from e


# ── Singleton Instance ────────────────────────────────────────────────────
image_transcoder = ImageTranscoder()
