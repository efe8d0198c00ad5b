"""
Error code system.

FeedbackInsightsError is the base exception for all structured errors.
Raise it (or one of its subclasses) with an error code from the registry,
and the error middleware will produce a structured JSON response.

Usage:
    from app.core.errors import InvalidPagination
    raise InvalidPagination(detail="page_size=101 outside [1, 100]")
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^FBK-[A-Z]{2,6}-\d{3}$")


class FeedbackInsightsError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "FBK-DB-001".
        detail: Internal-only detail message (never exposed to users).
        context: Arbitrary key-value context for structured logging.
    """

    default_code: str = "FBK-SYS-001"

    def __init__(
        self,
        code: str | None = None,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        code = code or self.default_code
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class ValidationError(FeedbackInsightsError):
    """Malformed analysis shape or invalid request bounds. Never retried."""

    default_code = "FBK-VAL-001"


class AnalysisFailed(ValidationError):
    """An analysis provider produced a structurally invalid result."""

    default_code = "FBK-VAL-001"


class InvalidPagination(ValidationError):
    """page < 1 or page_size outside the allowed range."""

    default_code = "FBK-VAL-002"


class InvalidFeedbackId(ValidationError):
    default_code = "FBK-VAL-003"


class FeedbackNotFound(FeedbackInsightsError):
    default_code = "FBK-API-001"


class StoreError(FeedbackInsightsError):
    """Query execution failed. Propagated as fatal for the current request."""

    default_code = "FBK-DB-001"
