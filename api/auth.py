"""
Authentication for the FastAPI API.

Bearer tokens are HS256 JWTs carrying the user id as ``userId``. The
``get_current_user`` dependency resolves the token to a stored user and
attaches it to ``request.state.user``; ``require_admin`` additionally
checks the role.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from api.config import config
from api.database import LibraryDatabaseService, get_db_service
from api.errors import AuthError, ForbiddenError
from api.models import Identity
from utilities.logger import SecurityAuditLogger

logger = structlog.get_logger(__name__)

NO_TOKEN_MESSAGE = "No token, authorization denied"
INVALID_TOKEN_MESSAGE = "Token is not valid"
ADMIN_ONLY_MESSAGE = "Access denied. Admin only."

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error is off so a missing header maps to our 401 body instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a bearer token for a user.

    Args:
        user_id: Identifier stored under the ``userId`` claim
        expires_delta: Token lifetime, defaults to the configured expiry

    Returns:
        Encoded JWT
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=config.access_token_expire_minutes))
    to_encode = {"userId": user_id, "exp": expire}
    return jwt.encode(to_encode, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str) -> Optional[str]:
    """Return the ``userId`` claim, or None if the token is invalid or expired."""
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError:
        return None
    user_id = payload.get("userId")
    return user_id if isinstance(user_id, str) else None


def _reject(request: Request, reason: str, message: str, user_id: Optional[str] = None) -> AuthError:
    SecurityAuditLogger().bind_context(
        method=request.method,
        path=request.url.path
    ).log_auth_failure(reason, user_id=user_id)
    return AuthError(message)


def identity_from_user(user: Dict[str, Any]) -> Identity:
    return Identity(
        id=str(user["_id"]),
        name=user.get("name", ""),
        email=user.get("email", ""),
        role=user.get("role", "user")
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db_service: LibraryDatabaseService = Depends(get_db_service)
) -> Identity:
    """
    Resolve the bearer token to the calling user.

    Args:
        request: Current request, receives the identity on ``state.user``
        credentials: Parsed Authorization header
        db_service: Database service for the user lookup

    Returns:
        Identity of the authenticated user

    Raises:
        AuthError: If the token is missing, invalid, expired or names an unknown user
    """
    if credentials is None or not credentials.credentials:
        raise _reject(request, "missing_token", NO_TOKEN_MESSAGE)

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise _reject(request, "invalid_token", INVALID_TOKEN_MESSAGE)

    user = await db_service.get_user_by_id(user_id)
    if user is None:
        raise _reject(request, "unknown_user", INVALID_TOKEN_MESSAGE, user_id=user_id)

    identity = identity_from_user(user)
    request.state.user = identity
    return identity


async def require_admin(
    request: Request,
    identity: Identity = Depends(get_current_user)
) -> Identity:
    """
    Require an authenticated administrator.

    Raises:
        ForbiddenError: If the caller is authenticated but not an admin
    """
    if not identity.is_admin:
        SecurityAuditLogger().bind_context(
            method=request.method,
            path=request.url.path
        ).log_auth_failure("not_admin", user_id=identity.id)
        raise ForbiddenError(ADMIN_ONLY_MESSAGE)
    return identity
