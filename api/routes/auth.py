"""
Authentication routes: signup, login and the current user.

Every route here is behind the authentication rate limiter.
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, status

from api.auth import create_access_token, get_current_user, hash_password, verify_password
from api.database import LibraryDatabaseService, get_db_service, user_response
from api.errors import APIError, AuthError, ConflictError, InternalError, NotFoundError
from api.models import Identity, TokenResponse, UserResponse
from api.rate_limiter import enforce_auth_rate_limit
from api.validation import LOGIN_RULES, SIGNUP_RULES, validated_body
from utilities.logger import SecurityAuditLogger

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"

router = APIRouter(dependencies=[Depends(enforce_auth_rate_limit)])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: Dict[str, Any] = Depends(validated_body(SIGNUP_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Register a regular user and return a bearer token."""
    try:
        if await db_service.email_taken(payload["email"]):
            raise ConflictError("Email is already taken")

        user = await db_service.create_user(
            name=payload["name"],
            email=payload["email"],
            password_hash=hash_password(payload["password"])
        )
        return TokenResponse(token=create_access_token(user.id), user=user)

    except APIError:
        raise
    except Exception as e:
        logger.error("Signup failed", error=str(e))
        raise InternalError("Internal server error")


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: Dict[str, Any] = Depends(validated_body(LOGIN_RULES)),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Exchange email and password for a bearer token.

    Unknown email and wrong password produce the same response.
    """
    try:
        user = await db_service.get_user_by_email(payload["email"])
        if user is None or not verify_password(payload["password"], user.get("password", "")):
            SecurityAuditLogger().log_auth_failure(
                "invalid_credentials",
                user_id=str(user["_id"]) if user else None
            )
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        user_id = str(user["_id"])
        logger.info("User logged in", user_id=user_id)
        return TokenResponse(token=create_access_token(user_id), user=user_response(user))

    except APIError:
        raise
    except Exception as e:
        logger.error("Login failed", error=str(e))
        raise InternalError("Internal server error")


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: Identity = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    user = await db_service.get_user_by_id(identity.id)
    if user is None:
        raise NotFoundError("User not found")
    return user_response(user)
