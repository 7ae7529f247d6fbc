"""
Database service layer for the FastAPI application.
"""

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from api.models import (
    BookListResponse, BookQueryParams, BookResponse,
    EventListResponse, EventQueryParams, EventResponse,
    HistoryEntry, Pagination, UserResponse
)

logger = structlog.get_logger(__name__)

BOOK_FIELDS = ("title", "author", "genre", "fileUrl", "fileType", "coverUrl", "year")
EVENT_FIELDS = ("title", "description", "date", "location", "image")
USER_FIELDS = ("name", "email", "role")
HISTORY_BOOK_FIELDS = ("title", "author", "genre", "year", "coverUrl", "fileType")


def _pick(data: Dict[str, Any], fields) -> Dict[str, Any]:
    return {key: data[key] for key in fields if key in data and data[key] is not None}


def _object_id(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if ObjectId.is_valid(value) else None


def _build_pagination(page: int, limit: int, total: int) -> Pagination:
    pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        has_next=page < pages,
        has_prev=page > 1
    )


def _stringify_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return doc


def _parse_event_date(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def user_response(doc: Dict[str, Any]) -> UserResponse:
    doc = _stringify_id(doc)
    doc.pop("password", None)
    doc["historyCount"] = len(doc.pop("history", None) or [])
    return UserResponse(**doc)


class LibraryDatabaseService:
    """Database service for books, events and users."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.books_collection = database.books
        self.events_collection = database.events
        self.users_collection = database.users

    async def create_indexes(self) -> None:
        """Create indexes for the common query patterns."""
        try:
            await self.users_collection.create_index("email", unique=True)
            await self.books_collection.create_index("createdAt")
            await self.books_collection.create_index("genre")
            await self.events_collection.create_index("date")
            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Books

    async def create_book(self, data: Dict[str, Any]) -> BookResponse:
        now = datetime.utcnow()
        doc = _pick(data, BOOK_FIELDS)
        doc["createdAt"] = now
        doc["updatedAt"] = now

        result = await self.books_collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Book created", book_id=str(result.inserted_id), title=doc.get("title"))
        return BookResponse(**_stringify_id(doc))

    async def get_books(self, query_params: BookQueryParams) -> BookListResponse:
        """
        Get books with filtering and pagination, newest first.

        Args:
            query_params: Query parameters for filtering and pagination

        Returns:
            BookListResponse with paginated results
        """
        try:
            filter_query: Dict[str, Any] = {}

            if query_params.genre:
                filter_query["genre"] = query_params.genre
            if query_params.year is not None:
                filter_query["year"] = query_params.year
            if query_params.author:
                filter_query["author"] = {"$regex": re.escape(query_params.author), "$options": "i"}
            if query_params.search:
                pattern = {"$regex": re.escape(query_params.search), "$options": "i"}
                filter_query["$or"] = [
                    {"title": pattern},
                    {"author": pattern},
                    {"genre": pattern},
                ]

            skip = (query_params.page - 1) * query_params.limit
            total = await self.books_collection.count_documents(filter_query)

            cursor = (
                self.books_collection.find(filter_query)
                .sort("createdAt", -1)
                .skip(skip)
                .limit(query_params.limit)
            )
            docs = await cursor.to_list(length=query_params.limit)

            return BookListResponse(
                books=[BookResponse(**_stringify_id(doc)) for doc in docs],
                pagination=_build_pagination(query_params.page, query_params.limit, total)
            )

        except Exception as e:
            logger.error("Failed to get books", error=str(e), query_params=query_params.model_dump())
            raise

    async def get_book_by_id(self, book_id: str) -> Optional[BookResponse]:
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        doc = await self.books_collection.find_one({"_id": object_id})
        return BookResponse(**_stringify_id(doc)) if doc else None

    async def update_book(self, book_id: str, data: Dict[str, Any]) -> Optional[BookResponse]:
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        changes = _pick(data, BOOK_FIELDS)
        changes["updatedAt"] = datetime.utcnow()
        doc = await self.books_collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        return BookResponse(**_stringify_id(doc)) if doc else None

    async def delete_book(self, book_id: str) -> bool:
        object_id = _object_id(book_id)
        if object_id is None:
            return False
        result = await self.books_collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def list_all_books(self) -> List[Dict[str, Any]]:
        cursor = self.books_collection.find({}).sort("createdAt", -1)
        return await cursor.to_list(length=None)

    # Events

    async def create_event(self, data: Dict[str, Any]) -> EventResponse:
        now = datetime.utcnow()
        doc = _pick(data, EVENT_FIELDS)
        if "date" in doc:
            doc["date"] = _parse_event_date(doc["date"])
        doc["createdAt"] = now
        doc["updatedAt"] = now

        result = await self.events_collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Event created", event_id=str(result.inserted_id), title=doc.get("title"))
        return EventResponse(**_stringify_id(doc))

    async def get_events(self, query_params: EventQueryParams) -> EventListResponse:
        try:
            filter_query: Dict[str, Any] = {}
            if query_params.search:
                pattern = {"$regex": re.escape(query_params.search), "$options": "i"}
                filter_query["$or"] = [
                    {"title": pattern},
                    {"description": pattern},
                    {"location": pattern},
                ]

            skip = (query_params.page - 1) * query_params.limit
            total = await self.events_collection.count_documents(filter_query)

            cursor = (
                self.events_collection.find(filter_query)
                .sort("date", -1)
                .skip(skip)
                .limit(query_params.limit)
            )
            docs = await cursor.to_list(length=query_params.limit)

            return EventListResponse(
                events=[EventResponse(**_stringify_id(doc)) for doc in docs],
                pagination=_build_pagination(query_params.page, query_params.limit, total)
            )

        except Exception as e:
            logger.error("Failed to get events", error=str(e), query_params=query_params.model_dump())
            raise

    async def get_event_by_id(self, event_id: str) -> Optional[EventResponse]:
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        doc = await self.events_collection.find_one({"_id": object_id})
        return EventResponse(**_stringify_id(doc)) if doc else None

    async def update_event(self, event_id: str, data: Dict[str, Any]) -> Optional[EventResponse]:
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        changes = _pick(data, EVENT_FIELDS)
        if "date" in changes:
            changes["date"] = _parse_event_date(changes["date"])
        changes["updatedAt"] = datetime.utcnow()
        doc = await self.events_collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        return EventResponse(**_stringify_id(doc)) if doc else None

    async def delete_event(self, event_id: str) -> bool:
        object_id = _object_id(event_id)
        if object_id is None:
            return False
        result = await self.events_collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def list_all_events(self) -> List[Dict[str, Any]]:
        cursor = self.events_collection.find({}).sort("date", -1)
        return await cursor.to_list(length=None)

    # Users

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a user document without its password hash."""
        object_id = _object_id(user_id)
        if object_id is None:
            return None
        return await self.users_collection.find_one({"_id": object_id}, {"password": 0})

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Fetch a user document including the password hash, for login."""
        return await self.users_collection.find_one({"email": email})

    async def email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        query: Dict[str, Any] = {"email": email}
        if exclude_id is not None:
            object_id = _object_id(exclude_id)
            if object_id is not None:
                query["_id"] = {"$ne": object_id}
        return await self.users_collection.find_one(query, {"_id": 1}) is not None

    async def create_user(self, name: str, email: str, password_hash: str, role: str = "user") -> UserResponse:
        now = datetime.utcnow()
        doc = {
            "name": name,
            "email": email,
            "password": password_hash,
            "role": role,
            "history": [],
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.users_collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("User created", user_id=str(result.inserted_id), role=role)
        return user_response(doc)

    async def list_users(self) -> List[UserResponse]:
        cursor = self.users_collection.find({}, {"password": 0})
        docs = await cursor.to_list(length=None)
        return [user_response(doc) for doc in docs]

    async def list_all_users(self) -> List[Dict[str, Any]]:
        cursor = self.users_collection.find({}, {"password": 0})
        return await cursor.to_list(length=None)

    async def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[UserResponse]:
        object_id = _object_id(user_id)
        if object_id is None:
            return None
        changes = _pick(data, USER_FIELDS)
        changes["updatedAt"] = datetime.utcnow()
        doc = await self.users_collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            projection={"password": 0},
            return_document=ReturnDocument.AFTER
        )
        return user_response(doc) if doc else None

    async def delete_user(self, user_id: str) -> bool:
        object_id = _object_id(user_id)
        if object_id is None:
            return False
        result = await self.users_collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def record_book_access(self, user_id: str, book_id: str) -> bool:
        """
        Append a history entry unless the user's latest entry is the same book.

        The repeat check is part of the update filter, so concurrent reads of
        the same book add at most one entry.

        Returns:
            True if an entry was added
        """
        user_oid = _object_id(user_id)
        book_oid = _object_id(book_id)
        if user_oid is None or book_oid is None:
            return False

        result = await self.users_collection.update_one(
            {
                "_id": user_oid,
                "$expr": {
                    "$ne": [
                        {"$arrayElemAt": [{"$ifNull": ["$history.book", []]}, -1]},
                        book_oid
                    ]
                }
            },
            {"$push": {"history": {"book": book_oid, "accessedAt": datetime.utcnow()}}}
        )
        return result.modified_count > 0

    async def get_user_history(self, user_id: str) -> Optional[List[HistoryEntry]]:
        """
        Get a user's access history with book summaries.

        Returns:
            History entries in access order, or None if the user does not exist
        """
        user_oid = _object_id(user_id)
        if user_oid is None:
            return None

        user = await self.users_collection.find_one({"_id": user_oid}, {"history": 1})
        if user is None:
            return None

        history = user.get("history") or []
        book_ids = list({entry["book"] for entry in history if entry.get("book") is not None})
        projection = {field: 1 for field in HISTORY_BOOK_FIELDS}
        books = {}
        if book_ids:
            cursor = self.books_collection.find({"_id": {"$in": book_ids}}, projection)
            for doc in await cursor.to_list(length=None):
                books[doc["_id"]] = _stringify_id(doc)

        return [
            HistoryEntry(book=books.get(entry.get("book")), accessed_at=entry["accessedAt"])
            for entry in history
        ]

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "books_count": await self.books_collection.count_documents({}),
                "events_count": await self.events_collection.count_documents({}),
                "users_count": await self.users_collection.count_documents({}),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }


def get_db_service(request: Request) -> LibraryDatabaseService:
    """Dependency returning the database service created at startup."""
    return request.app.state.db_service
