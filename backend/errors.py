"""Error types surfaced by the quoting assistant.

The analyzer and quote engine never raise for well-formed input; the only
failure a caller sees is a document whose text cannot be obtained.
"""

from typing import Any, Dict, Optional


class ErrorCode:
    """Error code constants."""

    TEXT_UNAVAILABLE = "TEXT_UNAVAILABLE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UNREADABLE_DOCUMENT = "UNREADABLE_DOCUMENT"
    EMPTY_DOCUMENT = "EMPTY_DOCUMENT"
    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"


class QuoteAssistantError(Exception):
    """Base exception carrying a code, a message and optional context.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class TextUnavailableError(QuoteAssistantError):
    """No usable text could be read from an uploaded document."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.TEXT_UNAVAILABLE,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
