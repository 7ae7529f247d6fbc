"""
Input sanitization for request bodies and query parameters.

Known-malicious substrings (script elements, ``javascript:`` URIs, inline
event handlers, SQL keywords and comment markers) are stripped from every
top-level string value. Sanitization never rejects a request.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"

# Request bodies of any other media type are never parsed into fields
SANITIZED_MEDIA_TYPES = (JSON_MEDIA_TYPE, FORM_MEDIA_TYPE)


BLACKLISTED_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("script_tag", re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)),
    ("javascript_uri", re.compile(r"javascript:", re.IGNORECASE)),
    ("event_handler", re.compile(r"on\w+\s*=", re.IGNORECASE)),
    ("union_select", re.compile(r"union\s+select", re.IGNORECASE)),
    ("drop_table", re.compile(r"drop\s+table", re.IGNORECASE)),
    ("delete_from", re.compile(r"delete\s+from", re.IGNORECASE)),
    ("insert_into", re.compile(r"insert\s+into", re.IGNORECASE)),
    ("update_set", re.compile(r"update\s+set", re.IGNORECASE)),
    ("sql_line_comment", re.compile(r"--")),
    ("sql_block_comment_open", re.compile(r"/\*")),
    ("sql_block_comment_close", re.compile(r"\*/")),
]


def detect_suspicious(value: str) -> List[str]:
    """Return the names of the blacklisted patterns found in ``value``."""
    return [name for name, pattern in BLACKLISTED_PATTERNS if pattern.search(value)]


def _strip_once(value: str) -> str:
    for _, pattern in BLACKLISTED_PATTERNS:
        value = pattern.sub("", value)
    return value.strip()


def sanitize_string(value: str) -> str:
    """
    Remove every blacklisted pattern from ``value`` and trim it.

    Removing one pattern can splice its neighbours into a new match
    (``javajavascript:script:``), so passes repeat until nothing changes.
    The result is a fixed point: sanitizing it again returns it unchanged.
    """
    previous = None
    while previous != value:
        previous = value
        value = _strip_once(value)
    return value


def sanitize_value(value: Any) -> Any:
    """Sanitize strings; every other type passes through untouched."""
    if isinstance(value, str):
        return sanitize_string(value)
    return value


def sanitize_mapping(data: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, List[str]]]:
    """
    Sanitize the top-level string values of a mapping.

    Args:
        data: Request body or query parameters

    Returns:
        Tuple of (sanitized copy, {field: matched pattern names}) where the
        second item lists only fields whose value contained a blacklisted pattern
    """
    cleaned = {}
    flagged = {}
    for key, value in data.items():
        if isinstance(value, str):
            patterns = detect_suspicious(value)
            if patterns:
                flagged[key] = patterns
        cleaned[key] = sanitize_value(value)
    return cleaned, flagged


def sanitize_pairs(pairs: List[Tuple[str, str]]) -> Tuple[List[Tuple[str, str]], Dict[str, List[str]]]:
    """Sanitize ``(key, value)`` pairs such as a parsed query string."""
    cleaned = []
    flagged = {}
    for key, value in pairs:
        patterns = detect_suspicious(value)
        if patterns:
            flagged[key] = patterns
        cleaned.append((key, sanitize_string(value)))
    return cleaned, flagged


def media_type(content_type: Optional[str]) -> str:
    """Bare, lower-cased media type of a Content-Type header value."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()
