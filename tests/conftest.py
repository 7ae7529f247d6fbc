"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from api.auth import create_access_token
from api.config import APIConfig
from api.database import LibraryDatabaseService, get_db_service
from api.main import create_app
from utilities.config import LibraryConfig


class FakeClock:
    """Manually advanced clock for rate limiter tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def admin_user():
    """Stored admin user document (password excluded, as the service returns it)."""
    return {
        "_id": ObjectId(),
        "name": "Admin",
        "email": "admin@example.com",
        "role": "admin",
        "history": [],
        "createdAt": datetime(2024, 1, 1),
        "updatedAt": datetime(2024, 1, 1),
    }


@pytest.fixture
def regular_user():
    return {
        "_id": ObjectId(),
        "name": "Reader",
        "email": "reader@example.com",
        "role": "user",
        "history": [],
        "createdAt": datetime(2024, 1, 2),
        "updatedAt": datetime(2024, 1, 2),
    }


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(str(admin_user["_id"]))


@pytest.fixture
def user_token(regular_user):
    return create_access_token(str(regular_user["_id"]))


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def user_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def sample_book_doc():
    """Book document as stored in MongoDB."""
    return {
        "_id": ObjectId(),
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "genre": "Fantasy",
        "fileUrl": "/uploads/books/file-1700000000000-1.pdf",
        "fileType": "pdf",
        "coverUrl": "/uploads/covers/cover-1700000000000-2.png",
        "year": 1937,
        "createdAt": datetime(2024, 3, 1, 12, 0),
        "updatedAt": datetime(2024, 3, 2, 12, 0),
    }


@pytest.fixture
def sample_event_doc():
    return {
        "_id": ObjectId(),
        "title": "Book Club",
        "description": "Monthly discussion",
        "date": datetime(2024, 5, 10, 18, 30),
        "location": "Main Hall",
        "image": "/uploads/events/image-1700000000000-3.jpg",
        "createdAt": datetime(2024, 4, 1),
        "updatedAt": datetime(2024, 4, 1),
    }


@pytest.fixture
def mock_db_service(admin_user, regular_user):
    """Database service mock that knows the admin and regular users."""
    mock = AsyncMock(spec=LibraryDatabaseService)
    users = {str(admin_user["_id"]): admin_user, str(regular_user["_id"]): regular_user}

    async def get_user_by_id(user_id):
        return users.get(user_id)

    mock.get_user_by_id.side_effect = get_user_by_id
    return mock


@pytest.fixture
def api_settings():
    return APIConfig(
        environment="test",
        rate_limit_max_requests=100,
        auth_rate_limit_max_requests=5,
    )


@pytest.fixture
def app(api_settings, mock_db_service, tmp_path):
    """Application with fresh rate limiters and the database service mocked."""
    application = create_app(
        api_settings,
        LibraryConfig(upload_root=str(tmp_path / "uploads"))
    )
    application.dependency_overrides[get_db_service] = lambda: mock_db_service
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)
