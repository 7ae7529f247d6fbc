"""
Tests for the Excel export.
"""

from datetime import datetime
from io import BytesIO

from openpyxl import load_workbook

from api.export import (
    BOOK_COLUMNS, EVENT_COLUMNS, USER_COLUMNS, XLSX_MEDIA_TYPE,
    books_to_rows, build_workbook, events_to_rows, excel_response,
    export_filename, users_to_rows
)


class TestRows:
    """Test cases for row conversion."""

    def test_book_rows(self, sample_book_doc):
        row = books_to_rows([sample_book_doc])[0]

        assert len(row) == len(BOOK_COLUMNS)
        assert row[0] == str(sample_book_doc["_id"])
        assert row[5] == "PDF"
        assert row[8] == "2024-03-01"
        assert row[9] == "2024-03-02"

    def test_book_optional_fields_blank(self, sample_book_doc):
        del sample_book_doc["coverUrl"]
        del sample_book_doc["year"]
        row = books_to_rows([sample_book_doc])[0]
        assert row[4] == ""
        assert row[7] == ""

    def test_event_rows(self, sample_event_doc):
        row = events_to_rows([sample_event_doc])[0]
        assert len(row) == len(EVENT_COLUMNS)
        assert row[3] == "2024-05-10 18:30"

    def test_user_rows_count_history_and_omit_password(self, regular_user):
        regular_user["password"] = "$2b$12$hash"
        regular_user["history"] = [{"book": "a"}, {"book": "b"}]
        row = users_to_rows([regular_user])[0]

        assert len(row) == len(USER_COLUMNS)
        assert row[-1] == 2
        assert "$2b$12$hash" not in row


class TestWorkbook:
    """Test cases for workbook rendering."""

    def test_build_workbook(self, sample_book_doc):
        payload = build_workbook("Books", BOOK_COLUMNS, books_to_rows([sample_book_doc]))
        ws = load_workbook(BytesIO(payload)).active

        assert ws.title == "Books"
        assert [cell.value for cell in ws[1]] == [header for header, _ in BOOK_COLUMNS]
        assert ws["A1"].font.bold is True
        assert ws.column_dimensions["G"].width == 40
        assert ws["B2"].value == "The Hobbit"

    def test_empty_collection_has_header_only(self):
        payload = build_workbook("Users", USER_COLUMNS, [])
        ws = load_workbook(BytesIO(payload)).active
        assert ws.max_row == 1

    def test_filename(self):
        assert export_filename("books", datetime(2024, 7, 9)) == "books-2024-07-09.xlsx"

    def test_excel_response_headers(self):
        response = excel_response("events", b"data")
        assert response.media_type == XLSX_MEDIA_TYPE
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="events-')
        assert disposition.endswith('.xlsx"')
