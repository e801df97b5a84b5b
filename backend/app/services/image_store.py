"""
TourDesk Backend: Image Store
================================

What:  Durable flat-file storage for transcoded tour images.
Why:   Centralizes every filesystem operation on IMAGE_DIR behind a path
       resolver that can never leave that directory.
How:   Async file I/O via aiofiles; writes go to a temporary sibling, are
       flushed and fsync'd, then atomically renamed into place.
Who:   Called by TourImageService (write during transcode-and-store, delete
       during cleanup).

Security Model:
    Filenames are generated by the server (tour-<id>-<ts>-<role>.<ext>), never
    taken from the client. Path resolution still rejects anything that is not a
    plain filename, and verifies the resolved path sits directly inside the
    image directory, so a corrupted record value cannot reach other files.

Directory Structure:
    public/img/tours/
    ├── tour-1-1700000000000-cover.jpeg
    ├── tour-1-1700000000000-1.jpeg
    └── tour-1-1700000000000-2.jpeg
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from app.config import settings

logger = logging.getLogger(__name__)

# Suffix of in-flight writes; never a valid stored image name
PARTIAL_SUFFIX = ".part"


class ImageStore:
    """
    Write, probe and delete image files inside one designated directory.

    Error contract:
        - resolve() raises ValueError for names that would escape the directory
        - write_file() raises OSError on I/O failure (caller decides how to report)
        - delete_file() returns False for an already-missing file, raises OSError
          for any other failure
    """

    def __init__(self, image_dir: Optional[str] = None):
        """
        Args:
            image_dir: Override the default directory (used in tests).
                       If None, uses settings.image_dir.

        The directory is not created here; the application lifespan does that
        at startup, so importing this module has no filesystem side effects.
        """
        self.root = Path(image_dir or settings.image_dir).resolve()
        logger.info("ImageStore initialized with root=%s", self.root)

    def resolve(self, filename: str) -> Path:
        """
        Map a stored filename to its absolute path inside the image directory.

        Rejects empty names, "." / "..", and anything containing a path
        separator. The resolved result must have the image directory as its
        direct parent (this also catches symlinked names pointing elsewhere).
        """
        if not filename or filename in {".", ".."}:
            raise ValueError(f"Invalid image filename: {filename!r}")
        if "/" in filename or "\\" in filename or "\x00" in filename:
            raise ValueError(f"Image filename must not contain path components: {filename!r}")

        candidate = (self.root / filename).resolve()
        if candidate.parent != self.root:
            raise ValueError(f"Image filename escapes the image directory: {filename!r}")
        return candidate

    async def write_file(self, filename: str, content: bytes) -> Path:
        """
        Durably write `content` under `filename`.

        On return the bytes are on stable storage: written to a unique
        temporary file, flushed, fsync'd, and renamed over the final name,
        after which the directory itself is fsync'd so the rename survives a
        crash. A reader sees either no file or the complete file. Both fsyncs
        run in a worker thread.
        """
        path = self.resolve(filename)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")

        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(temp_path, path)
            await asyncio.to_thread(self._fsync_dir)
        except OSError:
            # Leave no half-written temp file behind; the final name was never created
            try:
                await aiofiles.os.remove(temp_path)
            except FileNotFoundError:
                pass
            raise

        logger.info("Image stored: %s (%d bytes)", filename, len(content))
        return path

    def _fsync_dir(self) -> None:
        """Flush the directory entry created by the rename to stable storage."""
        fd = os.open(self.root, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    async def file_exists(self, filename: str) -> bool:
        """True if `filename` is present in the image directory."""
        try:
            path = self.resolve(filename)
        except ValueError:
            return False
        return await aiofiles.os.path.isfile(path)

    async def delete_file(self, filename: str) -> bool:
        """
        Remove `filename` from the image directory.

        Returns:
            True if the file was deleted, False if it was already gone.

        Raises:
            ValueError: the name cannot be resolved inside the directory
            OSError:    permission or I/O failure other than "not found"
        """
        path = self.resolve(filename)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Delete: image already gone: %s", filename)
            return False
        logger.info("Deleted image: %s", filename)
        return True

    def is_writable(self) -> bool:
        """Used by the health check; cheap, no I/O beyond an access() call."""
        return self.root.is_dir() and os.access(self.root, os.W_OK)


# ── Singleton Instance ────────────────────────────────────────────────────
# Image directory doesn't change at runtime; no per-request state needed
image_store = ImageStore()
