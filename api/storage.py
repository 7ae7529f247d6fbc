"""
Local filesystem storage for validated uploads.
"""

import os
import random
import shutil
import time
from pathlib import Path
from typing import Union

import structlog
from fastapi import Request, UploadFile
from fastapi.concurrency import run_in_threadpool

logger = structlog.get_logger(__name__)

BOOKS_FOLDER = "books"
COVERS_FOLDER = "covers"
EVENTS_FOLDER = "events"
PUBLIC_PREFIX = "/uploads"


def unique_filename(prefix: str, original_name: str) -> str:
    """``<prefix>-<epoch ms>-<random>`` keeping the original extension."""
    extension = os.path.splitext(original_name)[1].lower()
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}{extension}"


class LocalUploadStorage:
    """Stores uploads under ``root/<folder>/`` and returns their public path."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure_folders(self) -> None:
        for folder in (BOOKS_FOLDER, COVERS_FOLDER, EVENTS_FOLDER):
            (self.root / folder).mkdir(parents=True, exist_ok=True)

    def _write(self, upload: UploadFile, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        upload.file.seek(0)
        with open(destination, "wb") as target:
            shutil.copyfileobj(upload.file, target)

    async def save(self, upload: UploadFile, folder: str, prefix: str) -> str:
        """
        Persist an upload that already passed validation.

        Args:
            upload: Uploaded file
            folder: Target folder under the storage root
            prefix: Stored filename prefix

        Returns:
            Public URL path, e.g. ``/uploads/books/file-1700000000000-42.pdf``
        """
        filename = unique_filename(prefix, upload.filename or "")
        destination = self.root / folder / filename

        try:
            await run_in_threadpool(self._write, upload, destination)
        except OSError as e:
            logger.error("Failed to store upload", folder=folder, error=str(e))
            raise

        url = f"{PUBLIC_PREFIX}/{folder}/{filename}"
        logger.info("Upload stored", url=url, original_name=upload.filename)
        return url


def get_storage(request: Request) -> LocalUploadStorage:
    """Dependency returning the storage created at startup."""
    return request.app.state.storage
