"""
Structured logging for the library service using structlog.
Provides configurable output formats and a security audit logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


class SecurityAuditLogger:
    """
    Logger for security-relevant request events with bound request context.
    """

    def __init__(self, name: str = "security.audit"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'SecurityAuditLogger':
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind (client_ip, method, path, ...)

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def log_request(self, status_code: int, duration_ms: float) -> None:
        """Log a completed request."""
        self.logger.info(
            "Request completed",
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
            **self.context
        )

    def log_suspicious_input(self, field: str, location: str, patterns: list) -> None:
        """Log input that matched a blacklisted pattern and was rewritten."""
        self.logger.warning(
            "Suspicious input sanitized",
            field=field,
            location=location,
            patterns=patterns,
            **self.context
        )

    def log_rate_limited(self, limiter: str, count: int, limit: int) -> None:
        """Log a request rejected by a rate limiter."""
        self.logger.warning(
            "Rate limit exceeded",
            limiter=limiter,
            count=count,
            limit=limit,
            **self.context
        )

    def log_auth_failure(self, reason: str, user_id: Optional[str] = None) -> None:
        """Log a rejected credential or role check."""
        self.logger.warning(
            "Authentication failure",
            reason=reason,
            user_id=user_id,
            **self.context
        )

    def log_upload_rejected(self, category: str, reason: str, filename: Optional[str] = None) -> None:
        """Log an upload that failed validation."""
        self.logger.warning(
            "Upload rejected",
            category=category,
            reason=reason,
            filename=filename,
            **self.context
        )
