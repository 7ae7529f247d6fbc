"""
Excel export of the book, event and user collections.
"""

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from fastapi.responses import Response
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

logger = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FILL = PatternFill(start_color="2B579A", end_color="2B579A", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

# (header, column width)
BOOK_COLUMNS: List[Tuple[str, int]] = [
    ("Book ID", 25),
    ("Title", 30),
    ("Author", 20),
    ("Genre", 15),
    ("Year", 10),
    ("File Type", 10),
    ("File URL", 40),
    ("Cover URL", 40),
    ("Uploaded", 15),
    ("Last Updated", 15),
]

EVENT_COLUMNS: List[Tuple[str, int]] = [
    ("Event ID", 25),
    ("Title", 30),
    ("Description", 40),
    ("Date", 20),
    ("Location", 25),
    ("Image URL", 40),
    ("Created", 15),
    ("Last Updated", 15),
]

USER_COLUMNS: List[Tuple[str, int]] = [
    ("User ID", 25),
    ("Name", 20),
    ("Email", 30),
    ("Role", 10),
    ("Member Since", 15),
    ("Last Updated", 15),
    ("Books Accessed", 15),
]


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if isinstance(value, datetime) else ""


def _format_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if isinstance(value, datetime) else ""


def build_workbook(
    sheet_name: str,
    columns: Sequence[Tuple[str, int]],
    rows: Iterable[Sequence[Any]]
) -> bytes:
    """
    Render rows to an xlsx document.

    Args:
        sheet_name: Title of the single worksheet
        columns: Header and width for each column
        rows: Cell values in column order

    Returns:
        The workbook serialized as bytes
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    ws.append([header for header, _ in columns])
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    for col, (_, width) in enumerate(columns, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    for row in rows:
        ws.append(list(row))

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def books_to_rows(books: Iterable[Dict[str, Any]]) -> List[List[Any]]:
    return [
        [
            str(book["_id"]),
            book.get("title", ""),
            book.get("author", ""),
            book.get("genre", ""),
            book.get("year") or "",
            (book.get("fileType") or "").upper(),
            book.get("fileUrl", ""),
            book.get("coverUrl") or "",
            _format_date(book.get("createdAt")),
            _format_date(book.get("updatedAt")),
        ]
        for book in books
    ]


def events_to_rows(events: Iterable[Dict[str, Any]]) -> List[List[Any]]:
    return [
        [
            str(event["_id"]),
            event.get("title", ""),
            event.get("description", ""),
            _format_datetime(event.get("date")),
            event.get("location", ""),
            event.get("image") or "",
            _format_date(event.get("createdAt")),
            _format_date(event.get("updatedAt")),
        ]
        for event in events
    ]


def users_to_rows(users: Iterable[Dict[str, Any]]) -> List[List[Any]]:
    """Password hashes are never exported; the column set has no slot for them."""
    return [
        [
            str(user["_id"]),
            user.get("name", ""),
            user.get("email", ""),
            user.get("role", ""),
            _format_date(user.get("createdAt")),
            _format_date(user.get("updatedAt")),
            len(user.get("history") or []),
        ]
        for user in users
    ]


def export_filename(prefix: str, today: Optional[datetime] = None) -> str:
    today = today or datetime.utcnow()
    return f"{prefix}-{today.strftime('%Y-%m-%d')}.xlsx"


def excel_response(prefix: str, payload: bytes) -> Response:
    filename = export_filename(prefix)
    logger.info("Excel export generated", filename=filename, size=len(payload))
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
