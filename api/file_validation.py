"""
Upload validation: size ceilings, content-type allow-lists and filename safety.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from fastapi import UploadFile

from api.config import config as api_config
from api.errors import UploadError
from utilities.logger import SecurityAuditLogger

BOOK_FILE_TYPES: Dict[str, str] = {
    "application/pdf": ".pdf",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "text/plain": ".txt",
    "application/epub+zip": ".epub",
}

IMAGE_FILE_TYPES: Dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

ALLOWED_FILE_TYPES: Dict[str, str] = {**BOOK_FILE_TYPES, **IMAGE_FILE_TYPES}

MALICIOUS_EXTENSION_PATTERN = re.compile(r"\.(exe|bat|cmd|com|pif|scr|vbs|js|jar|dll|so|dylib)$", re.IGNORECASE)
PATH_TRAVERSAL_SEQUENCES = ("..", "/", "\\")


class UploadCategory(str, Enum):
    """File categories with their own size ceiling and allow-list."""
    BOOK = "book"
    IMAGE = "image"
    DEFAULT = "default"


@dataclass(frozen=True)
class UploadConstraint:
    max_bytes: int
    allowed_types: Dict[str, str]

    @property
    def max_megabytes(self) -> int:
        return round(self.max_bytes / (1024 * 1024))


@dataclass(frozen=True)
class UploadDescriptor:
    """What the validator needs to know about an uploaded file."""
    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class UploadCheck:
    ok: bool
    error: Optional[str] = None
    message: Optional[str] = None


UPLOAD_CONSTRAINTS: Dict[UploadCategory, UploadConstraint] = {
    UploadCategory.BOOK: UploadConstraint(api_config.max_book_upload_bytes, BOOK_FILE_TYPES),
    UploadCategory.IMAGE: UploadConstraint(api_config.max_image_upload_bytes, IMAGE_FILE_TYPES),
    UploadCategory.DEFAULT: UploadConstraint(api_config.max_default_upload_bytes, ALLOWED_FILE_TYPES),
}


def describe_upload(upload: Optional[UploadFile]) -> Optional[UploadDescriptor]:
    """Build a descriptor from a FastAPI upload, measuring the size if the server did not."""
    if upload is None or not upload.filename:
        return None

    size = upload.size
    if size is None:
        position = upload.file.tell()
        upload.file.seek(0, 2)
        size = upload.file.tell()
        upload.file.seek(position)

    return UploadDescriptor(
        filename=upload.filename,
        content_type=(upload.content_type or "").split(";")[0].strip().lower(),
        size=size
    )


def validate_upload(
    descriptor: Optional[UploadDescriptor],
    category: UploadCategory = UploadCategory.DEFAULT,
    constraints: Optional[Dict[UploadCategory, UploadConstraint]] = None
) -> UploadCheck:
    """
    Check an upload against its category's constraint.

    Checks run in order and the first failure is reported: missing file,
    size ceiling, content type, path traversal, blacklisted extension.

    Args:
        descriptor: Uploaded file, or None if the request carried none
        category: Upload category
        constraints: Override for ``UPLOAD_CONSTRAINTS``

    Returns:
        UploadCheck with ``ok`` True, or the error and message of the first failure
    """
    constraints = constraints or UPLOAD_CONSTRAINTS
    constraint = constraints.get(category, constraints[UploadCategory.DEFAULT])

    if descriptor is None:
        return UploadCheck(False, "No file uploaded", "Please select a file to upload")

    if descriptor.size > constraint.max_bytes:
        return UploadCheck(
            False,
            "File too large",
            f"File size must be less than {constraint.max_megabytes}MB"
        )

    if descriptor.content_type not in constraint.allowed_types:
        allowed = ", ".join(sorted(set(constraint.allowed_types.values())))
        return UploadCheck(
            False,
            "Invalid file type",
            f"File type not allowed. Allowed types: {allowed}"
        )

    if any(sequence in descriptor.filename for sequence in PATH_TRAVERSAL_SEQUENCES):
        return UploadCheck(False, "Invalid filename", "Filename contains invalid characters")

    if MALICIOUS_EXTENSION_PATTERN.search(descriptor.filename):
        return UploadCheck(
            False,
            "Potentially malicious file",
            "This file type is not allowed for security reasons"
        )

    return UploadCheck(True)


def ensure_valid_upload(upload: Optional[UploadFile], category: UploadCategory) -> UploadDescriptor:
    """
    Validate a FastAPI upload.

    Raises:
        UploadError: With the reason of the first failing check
    """
    descriptor = describe_upload(upload)
    result = validate_upload(descriptor, category)
    if not result.ok:
        SecurityAuditLogger().log_upload_rejected(
            category.value,
            result.error,
            filename=descriptor.filename if descriptor else None
        )
        raise UploadError(result.error, result.message)
    return descriptor
