"""
ASGI middleware for the request security pipeline.

Order on the way in (outermost first): request logging, security headers,
CORS, input sanitization, global rate limiting, upload guard. Sanitization,
rate limiting and the upload guard are pure ASGI middleware so they act on
the raw request before the route handlers read it.
"""

import json
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from api.auth import INVALID_TOKEN_MESSAGE, NO_TOKEN_MESSAGE, decode_access_token
from api.rate_limiter import GLOBAL_LIMIT_MESSAGE, FixedWindowRateLimiter
from api.sanitizer import (
    JSON_MEDIA_TYPE, SANITIZED_MEDIA_TYPES, media_type,
    sanitize_mapping, sanitize_pairs
)
from utilities.logger import SecurityAuditLogger

logger = structlog.get_logger(__name__)

# Allowance for the multipart envelope around the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024

SECURITY_HEADERS: Dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; "
        "img-src 'self' data: https: blob:; "
        "script-src 'self'; "
        "frame-src 'none'; "
        "object-src 'none'"
    ),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def scope_client_ip(scope: Scope) -> str:
    client = scope.get("client")
    if client and client[0]:
        return client[0]
    return "unknown"


def _audit_logger(scope: Scope) -> SecurityAuditLogger:
    return SecurityAuditLogger().bind_context(
        client_ip=scope_client_ip(scope),
        method=scope.get("method"),
        path=scope.get("path")
    )


class InputSanitizerMiddleware:
    """
    Strip blacklisted patterns from query parameters and request bodies.

    JSON object bodies and urlencoded forms are rewritten in place; other
    bodies (multipart uploads, JSON arrays, malformed JSON) pass through.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        audit = _audit_logger(scope)
        scope = dict(scope)

        query_string = scope.get("query_string", b"")
        if query_string:
            pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
            cleaned, flagged = sanitize_pairs(pairs)
            self._report(audit, flagged, "query")
            scope["query_string"] = urlencode(cleaned).encode("latin-1")

        content_type = media_type(Headers(scope=scope).get("content-type"))
        if content_type not in SANITIZED_MEDIA_TYPES:
            await self.app(scope, receive, send)
            return

        body, disconnected = await self._read_body(receive)
        if not disconnected:
            body = self._sanitize_body(body, content_type, audit)
            headers = MutableHeaders(scope=scope)
            headers["content-length"] = str(len(body))

        replayed = False

        async def replay_receive() -> Message:
            nonlocal replayed
            if disconnected:
                return {"type": "http.disconnect"}
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay_receive, send)

    @staticmethod
    async def _read_body(receive: Receive) -> Tuple[bytes, bool]:
        chunks: List[bytes] = []
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return b"", True
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                return b"".join(chunks), False

    def _sanitize_body(self, body: bytes, content_type: str, audit: SecurityAuditLogger) -> bytes:
        if not body:
            return body

        if content_type == JSON_MEDIA_TYPE:
            try:
                payload = json.loads(body)
            except ValueError:
                return body
            if not isinstance(payload, dict):
                return body
            cleaned, flagged = sanitize_mapping(payload)
            self._report(audit, flagged, "body")
            return json.dumps(cleaned).encode("utf-8")

        pairs = parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True)
        cleaned_pairs, flagged = sanitize_pairs(pairs)
        self._report(audit, flagged, "body")
        return urlencode(cleaned_pairs).encode("utf-8")

    @staticmethod
    def _report(audit: SecurityAuditLogger, flagged: Dict[str, List[str]], location: str) -> None:
        for field, patterns in flagged.items():
            audit.log_suspicious_input(field, location, patterns)


class RateLimitMiddleware:
    """Apply the process-wide limiter to every HTTP request, keyed by client IP."""

    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter):
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        decision = self.limiter.check(scope_client_ip(scope))
        if not decision.allowed:
            _audit_logger(scope).log_rate_limited(self.limiter.name, decision.count, decision.limit)
            response = JSONResponse(
                status_code=429,
                content={
                    "error": GLOBAL_LIMIT_MESSAGE,
                    "message": "Rate limit exceeded. Please try again later."
                },
                headers=decision.headers(self.limiter.clock())
            )
            await response(scope, receive, send)
            return

        rate_headers = decision.headers()

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in rate_headers.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)


class UploadGuardMiddleware:
    """
    Reject oversized or unauthenticated uploads before the body is read.

    FastAPI spools a multipart body before any route dependency runs, so the
    bearer token and the declared Content-Length are checked here against the
    ceiling of the upload route. Role checks and the per-file validation still
    run in the route.

    Args:
        limits: Upload route path mapped to its file size ceiling in bytes
    """

    def __init__(self, app: ASGIApp, limits: Dict[str, int]):
        self.app = app
        self.limits = limits

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        limit = self.limits.get(scope.get("path", "").rstrip("/"))
        if limit is None:
            await self.app(scope, receive, send)
            return

        rejection = self._check(Headers(scope=scope), limit)
        if rejection is not None:
            status_code, content = rejection
            _audit_logger(scope).log_upload_rejected("request", content["error"])
            headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
            response = JSONResponse(status_code=status_code, content=content, headers=headers)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)

    @staticmethod
    def _check(headers: Headers, limit: int) -> Optional[Tuple[int, Dict[str, str]]]:
        scheme, _, token = headers.get("authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return 401, {"error": NO_TOKEN_MESSAGE}
        if decode_access_token(token.strip()) is None:
            return 401, {"error": INVALID_TOKEN_MESSAGE}

        declared = headers.get("content-length")
        if declared is None:
            if "chunked" not in headers.get("transfer-encoding", "").lower():
                return None
            return 411, {"error": "Length required", "message": "Uploads must declare a Content-Length"}
        try:
            length = int(declared)
        except ValueError:
            return 400, {"error": "Invalid Content-Length"}

        if length > limit + MULTIPART_OVERHEAD_BYTES:
            megabytes = round(limit / (1024 * 1024))
            return 400, {"error": "File too large", "message": f"File size must be less than {megabytes}MB"}
        return None



class SecurityHeadersMiddleware:
    """Add hardening headers to every response."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in SECURITY_HEADERS.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)


class RequestLoggingMiddleware:
    """Log method, path, status and duration of every HTTP request."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_holder = {"status": 500}

        async def send_and_record(message: Message) -> None:
            if message["type"] == "http.response.start":
                status_holder["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_and_record)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            _audit_logger(scope).log_request(status_holder["status"], duration_ms)
