"""
Custom exceptions for the contact extraction engine.

Only violations of the external contract are raised: extraction and
classification functions return empty values for malformed card data
and leave acceptance to the caller.

Exception Hierarchy:
    CardEngineError (base)
    ├── VisionResponseError
    └── VisionCallError
"""

from typing import Optional


class CardEngineError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class VisionResponseError(CardEngineError):
    """Raised when a vision response holds neither JSON nor usable text."""

    def __init__(self, reason: str, source: Optional[str] = None):
        details = {"source": source} if source else {}
        super().__init__(reason, details)


class VisionCallError(CardEngineError):
    """Raised when the only image of a batch failed and produced no cards.

    Example:
        >>> raise VisionCallError("card.jpg", "429 rate limited", ["Processing failed: 429 rate limited"])
    """

    def __init__(self, source: str, reason: str, errors: Optional[list] = None):
        message = f"Vision call failed for {source}: {reason}"
        details = {"source": source, "errors": list(errors or [])}
        self.reason = reason
        super().__init__(message, details)
