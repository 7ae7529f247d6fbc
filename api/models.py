"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """User role enumeration."""
    USER = "user"
    ADMIN = "admin"


class FileType(str, Enum):
    """Book file formats accepted by the catalogue."""
    PDF = "pdf"
    MP3 = "mp3"
    MP4 = "mp4"


class Identity(BaseModel):
    """Authenticated principal attached to the request."""
    id: str = Field(..., description="User identifier")
    name: str = Field("", description="Display name")
    email: str = Field("", description="Email address")
    role: UserRole = Field(UserRole.USER, description="User role")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Pagination(BaseModel):
    """Pagination block returned with list responses."""
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Items per page")
    total: int = Field(..., description="Total number of items")
    pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., alias="hasNext", description="Whether there is a next page")
    has_prev: bool = Field(..., alias="hasPrev", description="Whether there is a previous page")


class BookResponse(BaseModel):
    """Book response model for API."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    genre: str = Field(..., description="Book genre")
    file_url: str = Field(..., alias="fileUrl", description="Uploaded file path")
    file_type: FileType = Field(..., alias="fileType", description="File format")
    cover_url: Optional[str] = Field(None, alias="coverUrl", description="Cover image path")
    year: Optional[int] = Field(None, description="Publication year")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="Last update timestamp")


class BookListResponse(BaseModel):
    """Response model for book list with pagination."""
    books: List[BookResponse] = Field(..., description="List of books")
    pagination: Pagination


class BookQueryParams(BaseModel):
    """Query parameters for book listing."""
    genre: Optional[str] = Field(None, description="Filter by exact genre")
    year: Optional[int] = Field(None, description="Filter by year")
    author: Optional[str] = Field(None, description="Case-insensitive author match")
    search: Optional[str] = Field(None, description="Search title, author and genre")
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(12, ge=1, le=100, description="Items per page")


class EventResponse(BaseModel):
    """Event response model for API."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Unique event identifier")
    title: str = Field(..., description="Event title")
    description: str = Field(..., description="Event description")
    date: datetime = Field(..., description="When the event takes place")
    location: str = Field(..., description="Where the event takes place")
    image: Optional[str] = Field(None, description="Event image path")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="Last update timestamp")


class EventListResponse(BaseModel):
    """Response model for event list with pagination."""
    events: List[EventResponse] = Field(..., description="List of events")
    pagination: Pagination


class EventQueryParams(BaseModel):
    """Query parameters for event listing."""
    search: Optional[str] = Field(None, description="Search title, description and location")
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(12, ge=1, le=100, description="Items per page")


class HistoryEntry(BaseModel):
    """One book access recorded for a user."""
    book: Optional[Dict[str, Any]] = Field(None, description="Book summary, or None if it was deleted")
    accessed_at: datetime = Field(..., alias="accessedAt", description="Access timestamp")

    model_config = ConfigDict(populate_by_name=True)


class UserResponse(BaseModel):
    """User response model; never carries the password hash."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(UserRole.USER, description="User role")
    history_count: int = Field(0, alias="historyCount", description="Number of recorded book accesses")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="Last update timestamp")


class TokenResponse(BaseModel):
    """Returned by signup and login."""
    token: str = Field(..., description="Signed bearer token")
    user: UserResponse


class ChatbotResponse(BaseModel):
    """Library assistant reply."""
    response: str = Field(..., description="Reply text")
    timestamp: datetime = Field(..., description="When the reply was produced")


class UploadResponse(BaseModel):
    """Location of a stored upload."""
    url: str = Field(..., description="Public path of the stored file")


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


class FieldErrorDetail(BaseModel):
    """One failing field in a validation error."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error summary")
    message: Optional[str] = Field(None, description="Additional error details")
    details: Optional[List[FieldErrorDetail]] = Field(None, description="Failing fields")
    stack: Optional[str] = Field(None, description="Traceback, development only")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
