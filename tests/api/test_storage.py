"""
Tests for local upload storage.
"""

import re
from io import BytesIO

import pytest
from fastapi import UploadFile

from api.storage import BOOKS_FOLDER, COVERS_FOLDER, EVENTS_FOLDER, LocalUploadStorage, unique_filename


def test_unique_filename_keeps_extension():
    name = unique_filename("cover", "Photo.PNG")
    assert re.fullmatch(r"cover-\d+-\d+\.png", name)


def test_ensure_folders(tmp_path):
    storage = LocalUploadStorage(tmp_path / "uploads")
    storage.ensure_folders()

    for folder in (BOOKS_FOLDER, COVERS_FOLDER, EVENTS_FOLDER):
        assert (tmp_path / "uploads" / folder).is_dir()


@pytest.mark.asyncio
async def test_save_writes_file_and_returns_public_path(tmp_path):
    storage = LocalUploadStorage(tmp_path)
    upload = UploadFile(file=BytesIO(b"%PDF-1.4 test"), filename="dune.pdf")

    url = await storage.save(upload, BOOKS_FOLDER, "file")

    assert url.startswith("/uploads/books/file-")
    assert url.endswith(".pdf")
    stored = tmp_path / BOOKS_FOLDER / url.rsplit("/", 1)[1]
    assert stored.read_bytes() == b"%PDF-1.4 test"
