"""
Tests for the database service with Motor collections mocked.
"""

from datetime import datetime

import pytest
from bson import ObjectId
from unittest.mock import AsyncMock, MagicMock

from api.database import LibraryDatabaseService, _build_pagination, user_response
from api.models import BookQueryParams, EventQueryParams


def make_cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def database():
    db = MagicMock()
    for name in ("books", "events", "users"):
        collection = MagicMock()
        collection.count_documents = AsyncMock(return_value=0)
        collection.find_one = AsyncMock(return_value=None)
        collection.update_one = AsyncMock()
        collection.insert_one = AsyncMock()
        setattr(db, name, collection)
    db.command = AsyncMock(return_value={"ok": 1})
    return db


@pytest.fixture
def service(database):
    return LibraryDatabaseService(database)


class TestPagination:
    """Test cases for the pagination block."""

    @pytest.mark.parametrize("page,limit,total,pages,has_next,has_prev", [
        (1, 12, 0, 0, False, False),
        (1, 12, 12, 1, False, False),
        (1, 12, 13, 2, True, False),
        (2, 12, 13, 2, False, True),
        (3, 5, 30, 6, True, True),
    ])
    def test_build_pagination(self, page, limit, total, pages, has_next, has_prev):
        pagination = _build_pagination(page, limit, total)
        assert pagination.pages == pages
        assert pagination.has_next is has_next
        assert pagination.has_prev is has_prev

    def test_serialized_with_camel_case(self):
        data = _build_pagination(1, 12, 13).model_dump(by_alias=True)
        assert data == {"page": 1, "limit": 12, "total": 13, "pages": 2, "hasNext": True, "hasPrev": False}


class TestBooks:
    """Test cases for book queries."""

    @pytest.mark.asyncio
    async def test_get_books_filters_and_paginates(self, service, database, sample_book_doc):
        database.books.find.return_value = make_cursor([sample_book_doc])
        database.books.count_documents.return_value = 25

        result = await service.get_books(
            BookQueryParams(genre="Fantasy", year=1937, author="tolk", search="hob", page=2, limit=10)
        )

        filter_query = database.books.find.call_args[0][0]
        assert filter_query["genre"] == "Fantasy"
        assert filter_query["year"] == 1937
        assert filter_query["author"] == {"$regex": "tolk", "$options": "i"}
        assert [list(clause) for clause in filter_query["$or"]] == [["title"], ["author"], ["genre"]]

        cursor = database.books.find.return_value
        cursor.sort.assert_called_once_with("createdAt", -1)
        cursor.skip.assert_called_once_with(10)
        cursor.limit.assert_called_once_with(10)

        assert result.books[0].title == "The Hobbit"
        assert result.books[0].id == str(sample_book_doc["_id"])
        assert result.pagination.pages == 3

    @pytest.mark.asyncio
    async def test_search_is_escaped(self, service, database):
        database.books.find.return_value = make_cursor([])
        await service.get_books(BookQueryParams(search="c++"))

        filter_query = database.books.find.call_args[0][0]
        assert filter_query["$or"][0]["title"]["$regex"] == r"c\+\+"

    @pytest.mark.asyncio
    async def test_get_book_invalid_id(self, service, database):
        assert await service.get_book_by_id("nope") is None
        database.books.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_book_sets_timestamps(self, service, database):
        database.books.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        book = await service.create_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "genre": "SF",
            "fileType": "pdf",
            "fileUrl": "/uploads/books/x.pdf",
            "role": "ignored",
        })

        stored = database.books.insert_one.call_args[0][0]
        assert "role" not in stored
        assert stored["createdAt"] == stored["updatedAt"]
        assert book.title == "Dune"


class TestEvents:
    """Test cases for event queries."""

    @pytest.mark.asyncio
    async def test_events_sorted_by_date_desc(self, service, database, sample_event_doc):
        database.events.find.return_value = make_cursor([sample_event_doc])
        database.events.count_documents.return_value = 1

        result = await service.get_events(EventQueryParams(search="club"))

        filter_query = database.events.find.call_args[0][0]
        assert [list(clause) for clause in filter_query["$or"]] == [["title"], ["description"], ["location"]]
        database.events.find.return_value.sort.assert_called_once_with("date", -1)
        assert result.events[0].location == "Main Hall"

    @pytest.mark.asyncio
    async def test_create_event_parses_date(self, service, database):
        database.events.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        await service.create_event({
            "title": "Talk",
            "description": "Author talk",
            "date": "2024-05-10T18:30:00Z",
            "location": "Hall",
        })

        stored = database.events.insert_one.call_args[0][0]
        assert isinstance(stored["date"], datetime)


class TestUsers:
    """Test cases for users and history."""

    def test_user_response_hides_password(self, regular_user):
        regular_user["password"] = "hash"
        regular_user["history"] = [{"book": ObjectId(), "accessedAt": datetime(2024, 1, 1)}]

        response = user_response(regular_user)
        data = response.model_dump(by_alias=True)

        assert "password" not in data
        assert data["historyCount"] == 1

    @pytest.mark.asyncio
    async def test_record_access_appends(self, service, database, regular_user):
        book_id = ObjectId()
        database.users.update_one.return_value = MagicMock(modified_count=1)

        added = await service.record_book_access(str(regular_user["_id"]), str(book_id))

        assert added is True
        update = database.users.update_one.call_args[0][1]
        assert update["$push"]["history"]["book"] == book_id

    @pytest.mark.asyncio
    async def test_record_access_skips_repeat(self, service, database, regular_user):
        """Opening the same book twice in a row records one entry."""
        book_id = ObjectId()
        database.users.update_one.return_value = MagicMock(modified_count=0)

        added = await service.record_book_access(str(regular_user["_id"]), str(book_id))

        assert added is False
        database.users.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_access_checks_last_entry_in_update_filter(self, service, database, regular_user):
        """The repeat check and the push are a single atomic update."""
        book_id = ObjectId()
        database.users.update_one.return_value = MagicMock(modified_count=1)

        await service.record_book_access(str(regular_user["_id"]), str(book_id))

        database.users.update_one.assert_awaited_once()
        query = database.users.update_one.call_args[0][0]
        assert query["_id"] == regular_user["_id"]
        last_book, compared = query["$expr"]["$ne"]
        assert compared == book_id
        assert last_book == {"$arrayElemAt": [{"$ifNull": ["$history.book", []]}, -1]}

    @pytest.mark.asyncio
    async def test_record_access_invalid_ids(self, service, database):
        assert await service.record_book_access("nope", str(ObjectId())) is False
        database.users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_history_populates_books(self, service, database, regular_user, sample_book_doc):
        missing_id = ObjectId()
        database.users.find_one.return_value = {
            "_id": regular_user["_id"],
            "history": [
                {"book": sample_book_doc["_id"], "accessedAt": datetime(2024, 1, 1)},
                {"book": missing_id, "accessedAt": datetime(2024, 1, 2)},
            ],
        }
        database.books.find.return_value = make_cursor([sample_book_doc])

        history = await service.get_user_history(str(regular_user["_id"]))

        assert history[0].book["title"] == "The Hobbit"
        assert history[0].book["_id"] == str(sample_book_doc["_id"])
        assert history[1].book is None

    @pytest.mark.asyncio
    async def test_email_taken_excludes_self(self, service, database, regular_user):
        await service.email_taken("reader@example.com", exclude_id=str(regular_user["_id"]))

        query = database.users.find_one.call_args[0][0]
        assert query == {"email": "reader@example.com", "_id": {"$ne": regular_user["_id"]}}

    @pytest.mark.asyncio
    async def test_health_check(self, service, database):
        health = await service.health_check()
        assert health["status"] == "healthy"

        database.command.side_effect = RuntimeError("down")
        health = await service.health_check()
        assert health["status"] == "unhealthy"
