"""
Declarative field validation.

A rule set is an ordered list of ``FieldRule`` entries, each a predicate and
the message reported when it fails. ``evaluate_rules`` runs every rule and
collects every failure; the FastAPI dependencies below turn failures into a
400 ``ValidationError`` before the route handler runs.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog
from bson import ObjectId
from fastapi import Request

from api.errors import ValidationError
from api.sanitizer import FORM_MEDIA_TYPE, JSON_MEDIA_TYPE, media_type

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_STRENGTH_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
MISSING = object()


@dataclass(frozen=True)
class FieldRule:
    """
    One check against one field.

    ``normalize`` runs before ``check`` and its result replaces the field
    value in the validated payload. Optional rules are skipped when the field
    is absent.
    """
    field: str
    check: Callable[[Any], bool]
    message: str
    optional: bool = False
    normalize: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


# Normalizers

def trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def normalize_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def to_int(value: Any) -> Any:
    if isinstance(value, str) and re.fullmatch(r"[+-]?\d+", value.strip()):
        return int(value.strip())
    return value


# Predicates

def length_between(min_length: int, max_length: Optional[int] = None) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        if len(value) < min_length:
            return False
        return max_length is None or len(value) <= max_length
    return check


def one_of(*choices: str) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return isinstance(value, str) and value in choices
    return check


def matches(pattern: str) -> Callable[[Any], bool]:
    compiled = re.compile(pattern)

    def check(value: Any) -> bool:
        return isinstance(value, str) and compiled.search(value) is not None
    return check


def int_between(min_value: int, max_value: Callable[[], int]) -> Callable[[Any], bool]:
    """``max_value`` is evaluated per call so bounds tied to the current date stay current."""
    def check(value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, int):
            return False
        return min_value <= value <= max_value()
    return check


def is_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def is_iso8601(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def not_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    return True


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def max_publication_year() -> int:
    return datetime.utcnow().year + 5


def evaluate_rules(
    data: Dict[str, Any],
    rules: Sequence[FieldRule]
) -> Tuple[Dict[str, Any], List[FieldError]]:
    """
    Run a rule set against a payload.

    Args:
        data: Field mapping (request body or path parameters)
        rules: Ordered rule set

    Returns:
        Tuple of (normalized copy of ``data``, every failure in rule order)
    """
    normalized = dict(data)
    errors: List[FieldError] = []

    for rule in rules:
        value = normalized.get(rule.field, MISSING)
        if value is MISSING and rule.optional:
            continue

        if value is not MISSING and rule.normalize is not None:
            value = rule.normalize(value)
            normalized[rule.field] = value

        if value is MISSING or not rule.check(value):
            errors.append(FieldError(rule.field, rule.message))

    return normalized, errors


def validate_payload(data: Dict[str, Any], rules: Sequence[FieldRule]) -> Dict[str, Any]:
    """
    Evaluate ``rules`` and raise on any failure.

    Raises:
        ValidationError: Listing every failing field
    """
    normalized, errors = evaluate_rules(data, rules)
    if errors:
        logger.debug("Validation failed", fields=[error.field for error in errors])
        raise ValidationError([error.to_dict() for error in errors])
    return normalized


def validated_body(rules: Sequence[FieldRule]):
    """
    Build a dependency that reads the request body and validates it.

    Only JSON and urlencoded form bodies are read, the two media types the
    input sanitizer rewrites. A body of any other type is treated as empty.
    """
    async def dependency(request: Request) -> Dict[str, Any]:
        content_type = media_type(request.headers.get("content-type"))
        payload: Any = {}

        if content_type == FORM_MEDIA_TYPE:
            form = await request.form()
            payload = dict(form)
        elif content_type == JSON_MEDIA_TYPE:
            raw = await request.body()
            if raw:
                try:
                    payload = await request.json()
                except ValueError:
                    raise ValidationError([{"field": "body", "message": "Request body must be valid JSON"}])
        elif content_type:
            logger.debug("Ignoring request body", content_type=content_type, path=request.url.path)

        if not isinstance(payload, dict):
            raise ValidationError([{"field": "body", "message": "Request body must be a JSON object"}])
        return validate_payload(payload, rules)

    return dependency


def valid_object_id(id: str) -> str:
    """Path dependency rejecting identifiers that are not ObjectIds."""
    validate_payload({"id": id}, ID_RULES)
    return id


# Rule sets

ID_RULES = [
    FieldRule("id", is_object_id, "Invalid ID format"),
]

SIGNUP_RULES = [
    FieldRule("name", length_between(2, 50), "Name must be between 2 and 50 characters", normalize=trim),
    FieldRule("email", is_email, "Please provide a valid email address", normalize=normalize_email),
    FieldRule("password", length_between(6), "Password must be at least 6 characters long"),
    FieldRule(
        "password",
        matches(PASSWORD_STRENGTH_PATTERN.pattern),
        "Password must contain at least one uppercase letter, one lowercase letter, and one number"
    ),
]

LOGIN_RULES = [
    FieldRule("email", is_email, "Please provide a valid email address", normalize=normalize_email),
    FieldRule("password", not_empty, "Password is required"),
]

_BOOK_FIELDS = [
    ("title", length_between(1, 200), "Title must be between 1 and 200 characters", trim),
    ("author", length_between(1, 100), "Author must be between 1 and 100 characters", trim),
    ("genre", length_between(1, 50), "Genre must be between 1 and 50 characters", trim),
    ("fileType", one_of("pdf", "mp3", "mp4"), "File type must be pdf, mp3, or mp4", None),
    ("fileUrl", matches(r"^/uploads/books/.+$"), "File URL must be a valid upload path", None),
]

_BOOK_OPTIONAL_FIELDS = [
    FieldRule(
        "coverUrl", matches(r"^/uploads/covers/.+$"), "Cover URL must be a valid upload path", optional=True
    ),
    FieldRule(
        "year",
        int_between(1800, max_publication_year),
        "Year must be between 1800 and the current year plus 5",
        optional=True,
        normalize=to_int
    ),
]

BOOK_CREATE_RULES = [
    FieldRule(field, check, message, normalize=normalize)
    for field, check, message, normalize in _BOOK_FIELDS
] + _BOOK_OPTIONAL_FIELDS

BOOK_UPDATE_RULES = [
    FieldRule(field, check, message, optional=True, normalize=normalize)
    for field, check, message, normalize in _BOOK_FIELDS
] + _BOOK_OPTIONAL_FIELDS

_EVENT_FIELDS = [
    ("title", length_between(1, 200), "Title must be between 1 and 200 characters", trim),
    ("description", length_between(1, 1000), "Description must be between 1 and 1000 characters", trim),
    ("date", is_iso8601, "Date must be a valid ISO date", None),
    ("location", length_between(1, 200), "Location must be between 1 and 200 characters", trim),
]

_EVENT_IMAGE_RULE = FieldRule(
    "image", matches(r"^/uploads/events/.+$"), "Image must be a valid upload path", optional=True
)

EVENT_CREATE_RULES = [
    FieldRule(field, check, message, normalize=normalize)
    for field, check, message, normalize in _EVENT_FIELDS
] + [_EVENT_IMAGE_RULE]

EVENT_UPDATE_RULES = [
    FieldRule(field, check, message, optional=True, normalize=normalize)
    for field, check, message, normalize in _EVENT_FIELDS
] + [_EVENT_IMAGE_RULE]

CHATBOT_MESSAGE_RULES = [
    FieldRule("message", length_between(1, 500), "Message must be between 1 and 500 characters", normalize=trim),
]

USER_CREATE_RULES = [
    FieldRule("name", length_between(2, 50), "Name must be between 2 and 50 characters", normalize=trim),
    FieldRule("email", is_email, "Please provide a valid email address", normalize=normalize_email),
    FieldRule("password", length_between(6), "Password must be at least 6 characters long"),
    FieldRule("role", one_of("user", "admin"), "Role must be either user or admin", optional=True),
]

USER_UPDATE_RULES = [
    FieldRule(
        "name", length_between(2, 50), "Name must be between 2 and 50 characters", optional=True, normalize=trim
    ),
    FieldRule(
        "email", is_email, "Please provide a valid email address", optional=True, normalize=normalize_email
    ),
    FieldRule("role", one_of("user", "admin"), "Role must be either user or admin", optional=True),
]
