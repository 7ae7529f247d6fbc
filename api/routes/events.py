"""
Library event routes.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from api.auth import require_admin
from api.database import LibraryDatabaseService, get_db_service
from api.errors import InternalError, NotFoundError
from api.export import EVENT_COLUMNS, build_workbook, events_to_rows, excel_response
from api.file_validation import UploadCategory, ensure_valid_upload
from api.models import EventListResponse, EventQueryParams, EventResponse, MessageResponse, UploadResponse
from api.storage import EVENTS_FOLDER, LocalUploadStorage, get_storage
from api.validation import EVENT_CREATE_RULES, EVENT_UPDATE_RULES, valid_object_id, validated_body

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/upload", response_model=UploadResponse, dependencies=[Depends(require_admin)])
async def upload_event_image(
    image: Optional[UploadFile] = File(None),
    storage: LocalUploadStorage = Depends(get_storage)
):
    ensure_valid_upload(image, UploadCategory.IMAGE)
    url = await storage.save(image, EVENTS_FOLDER, "image")
    return UploadResponse(url=url)


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def create_event(
    payload: Dict[str, Any] = Depends(validated_body(EVENT_CREATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    try:
        return await db_service.create_event(payload)
    except Exception as e:
        logger.error("Failed to create event", error=str(e))
        raise InternalError("Failed to create event")


@router.get("", response_model=EventListResponse)
async def get_events(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Get events, latest date first.

    - **search**: Case-insensitive match on title, description or location
    - **page**: Page number (starts from 1)
    - **limit**: Items per page (default 12)
    """
    try:
        query_params = EventQueryParams(search=search, page=page, limit=limit)
        return await db_service.get_events(query_params)
    except Exception as e:
        logger.error("Failed to get events", error=str(e))
        raise InternalError("Failed to retrieve events")


@router.get("/download-excel", dependencies=[Depends(require_admin)])
async def download_events_excel(db_service: LibraryDatabaseService = Depends(get_db_service)):
    try:
        events = await db_service.list_all_events()
        payload = build_workbook("Events", EVENT_COLUMNS, events_to_rows(events))
    except Exception as e:
        logger.error("Failed to export events", error=str(e))
        raise InternalError("Failed to export events")
    return excel_response("events", payload)


@router.get("/{id}", response_model=EventResponse)
async def get_event(
    event_id: str = Depends(valid_object_id),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    event = await db_service.get_event_by_id(event_id)
    if not event:
        raise NotFoundError("Event not found")
    return event


@router.put("/{id}", response_model=EventResponse, dependencies=[Depends(require_admin)])
async def update_event(
    event_id: str = Depends(valid_object_id),
    payload: Dict[str, Any] = Depends(validated_body(EVENT_UPDATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    event = await db_service.update_event(event_id, payload)
    if not event:
        raise NotFoundError("Event not found")
    return event


@router.delete("/{id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_event(
    event_id: str = Depends(valid_object_id),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    if not await db_service.delete_event(event_id):
        raise NotFoundError("Event not found")
    logger.info("Event deleted", event_id=event_id)
    return MessageResponse(message="Event deleted")
