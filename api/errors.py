"""
Error taxonomy for the API.

Every error is an HTTPException carrying a short ``error`` string and an
optional human readable ``message``; the handlers in ``api.main`` render them
as ``ErrorResponse`` bodies.
"""

from typing import Dict, List, Optional

from fastapi import HTTPException, status


class APIError(HTTPException):
    """Base class for errors surfaced directly to the caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        error: str,
        message: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code, detail=error, headers=headers)
        self.error = error
        self.message = message

    def to_content(self) -> Dict:
        content = {"error": self.error}
        if self.message:
            content["message"] = self.message
        return content


class ValidationError(APIError):
    """One or more request fields failed their rules."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, details: List[Dict[str, str]], error: str = "Validation failed"):
        super().__init__(error)
        self.details = details

    def to_content(self) -> Dict:
        content = super().to_content()
        content["details"] = self.details
        return content


class UploadError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(APIError):
    """Unique field collision; reported as a bad request."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, error: str, message: Optional[str] = None):
        super().__init__(error, message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(APIError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND


class RateLimitError(APIError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class InternalError(APIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
