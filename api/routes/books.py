"""
Book catalogue routes.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from api.auth import get_current_user, require_admin
from api.database import LibraryDatabaseService, get_db_service
from api.errors import APIError, InternalError, NotFoundError
from api.export import BOOK_COLUMNS, books_to_rows, build_workbook, excel_response
from api.file_validation import UploadCategory, ensure_valid_upload
from api.models import (
    BookListResponse, BookQueryParams, BookResponse,
    Identity, MessageResponse, UploadResponse
)
from api.storage import BOOKS_FOLDER, COVERS_FOLDER, LocalUploadStorage, get_storage
from api.validation import BOOK_CREATE_RULES, BOOK_UPDATE_RULES, valid_object_id, validated_body

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/upload", response_model=UploadResponse, dependencies=[Depends(require_admin)])
async def upload_book_file(
    file: Optional[UploadFile] = File(None),
    storage: LocalUploadStorage = Depends(get_storage)
):
    """Store a book file (pdf, audio, video, text or epub, up to 50MB)."""
    ensure_valid_upload(file, UploadCategory.BOOK)
    url = await storage.save(file, BOOKS_FOLDER, "file")
    return UploadResponse(url=url)


@router.post("/upload-cover", response_model=UploadResponse, dependencies=[Depends(require_admin)])
async def upload_cover(
    cover: Optional[UploadFile] = File(None),
    storage: LocalUploadStorage = Depends(get_storage)
):
    """Store a cover image (up to 5MB)."""
    ensure_valid_upload(cover, UploadCategory.IMAGE)
    url = await storage.save(cover, COVERS_FOLDER, "cover")
    return UploadResponse(url=url)


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def create_book(
    payload: Dict[str, Any] = Depends(validated_body(BOOK_CREATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    try:
        return await db_service.create_book(payload)
    except Exception as e:
        logger.error("Failed to create book", error=str(e))
        raise InternalError("Failed to create book")


@router.get("", response_model=BookListResponse)
async def get_books(
    genre: Optional[str] = None,
    year: Optional[int] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Get books with filtering and pagination, newest first.

    - **genre**: Exact genre
    - **year**: Publication year
    - **author**: Case-insensitive partial author match
    - **search**: Case-insensitive match on title, author or genre
    - **page**: Page number (starts from 1)
    - **limit**: Items per page (default 12)
    """
    try:
        query_params = BookQueryParams(
            genre=genre,
            year=year,
            author=author,
            search=search,
            page=page,
            limit=limit
        )
        return await db_service.get_books(query_params)

    except Exception as e:
        logger.error("Failed to get books", error=str(e))
        raise InternalError("Failed to retrieve books")


@router.get("/download-excel", dependencies=[Depends(require_admin)])
async def download_books_excel(db_service: LibraryDatabaseService = Depends(get_db_service)):
    """Download the whole catalogue as an xlsx workbook."""
    try:
        books = await db_service.list_all_books()
        payload = build_workbook("Books", BOOK_COLUMNS, books_to_rows(books))
    except Exception as e:
        logger.error("Failed to export books", error=str(e))
        raise InternalError("Failed to export books")
    return excel_response("books", payload)


@router.get("/{id}", response_model=BookResponse)
async def get_book(
    book_id: str = Depends(valid_object_id),
    identity: Identity = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Get a single book and record the access in the caller's history.

    - **id**: Book ObjectId
    """
    try:
        book = await db_service.get_book_by_id(book_id)
        if not book:
            raise NotFoundError("Book not found")

        await db_service.record_book_access(identity.id, book_id)
        return book

    except APIError:
        raise
    except Exception as e:
        logger.error("Failed to get book", book_id=book_id, error=str(e))
        raise InternalError("Failed to retrieve book")


@router.put("/{id}", response_model=BookResponse, dependencies=[Depends(require_admin)])
async def update_book(
    book_id: str = Depends(valid_object_id),
    payload: Dict[str, Any] = Depends(validated_body(BOOK_UPDATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    book = await db_service.update_book(book_id, payload)
    if not book:
        raise NotFoundError("Book not found")
    logger.info("Book updated", book_id=book_id, fields=sorted(payload))
    return book


@router.delete("/{id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_book(
    book_id: str = Depends(valid_object_id),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    if not await db_service.delete_book(book_id):
        raise NotFoundError("Book not found")
    logger.info("Book deleted", book_id=book_id)
    return MessageResponse(message="Book deleted")
