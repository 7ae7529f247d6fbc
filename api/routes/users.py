"""
User administration routes and the caller's reading history.
"""

from typing import Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, status

from api.auth import get_current_user, hash_password, require_admin
from api.database import LibraryDatabaseService, get_db_service
from api.errors import ConflictError, InternalError, NotFoundError
from api.export import USER_COLUMNS, build_workbook, excel_response, users_to_rows
from api.models import HistoryEntry, Identity, MessageResponse, UserResponse
from api.validation import USER_CREATE_RULES, USER_UPDATE_RULES, valid_object_id, validated_body

logger = structlog.get_logger(__name__)

EMAIL_TAKEN_MESSAGE = "Email is already taken"

router = APIRouter()


@router.get("", response_model=List[UserResponse], dependencies=[Depends(require_admin)])
async def list_users(db_service: LibraryDatabaseService = Depends(get_db_service)):
    return await db_service.list_users()


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def create_user(
    payload: Dict[str, Any] = Depends(validated_body(USER_CREATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Create a user with an explicit role (defaults to ``user``)."""
    if await db_service.email_taken(payload["email"]):
        raise ConflictError(EMAIL_TAKEN_MESSAGE)

    return await db_service.create_user(
        name=payload["name"],
        email=payload["email"],
        password_hash=hash_password(payload["password"]),
        role=payload.get("role", "user")
    )


@router.get("/download-excel", dependencies=[Depends(require_admin)])
async def download_users_excel(db_service: LibraryDatabaseService = Depends(get_db_service)):
    try:
        users = await db_service.list_all_users()
        payload = build_workbook("Users", USER_COLUMNS, users_to_rows(users))
    except Exception as e:
        logger.error("Failed to export users", error=str(e))
        raise InternalError("Failed to export users")
    return excel_response("users", payload)


@router.get("/me/history", response_model=List[HistoryEntry])
async def get_my_history(
    identity: Identity = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Books the caller has opened, oldest first, with title, author, genre, year, cover and file type."""
    history = await db_service.get_user_history(identity.id)
    if history is None:
        raise NotFoundError("User not found")
    return history


@router.delete("/{id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_user(
    user_id: str = Depends(valid_object_id),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    if not await db_service.delete_user(user_id):
        raise NotFoundError("User not found")
    logger.info("User deleted", user_id=user_id)
    return MessageResponse(message="User deleted")


@router.put("/{id}", response_model=UserResponse, dependencies=[Depends(require_admin)])
async def update_user(
    user_id: str = Depends(valid_object_id),
    payload: Dict[str, Any] = Depends(validated_body(USER_UPDATE_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Update name, email or role.

    The email must not belong to another user.
    """
    if payload.get("email") and await db_service.email_taken(payload["email"], exclude_id=user_id):
        raise ConflictError(EMAIL_TAKEN_MESSAGE)

    user = await db_service.update_user(user_id, payload)
    if not user:
        raise NotFoundError("User not found")
    return user
