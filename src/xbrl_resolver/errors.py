"""Exception types raised by the resolver.

Only conditions that abort a whole run are raised: an unparseable
document, or a caller explicitly asking for a complete filing. A missing
required concept is an ordinary outcome and travels as an Err result
(see models.Err), never as an exception.
"""

from __future__ import annotations

from typing import Any


class ResolverError(Exception):
    """Base error carrying a status code and structured details."""

    status: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


class MalformedDocumentError(ResolverError):
    """The input could not be parsed as a tagged filing."""

    status = 422


class InsufficientDataError(ResolverError):
    """One or more required concepts could not be resolved."""

    status = 422

    def __init__(self, missing_fields: list[str], message: str | None = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message or f"Missing required concepts: {', '.join(self.missing_fields)}",
            {"missing_fields": self.missing_fields},
        )


class CalculationError(ResolverError):
    """A derived calculation was given inputs it cannot combine."""

    def __init__(self, message: str, calculation_type: str, details: dict[str, Any] | None = None):
        self.calculation_type = calculation_type
        merged = {"calculation_type": calculation_type}
        merged.update(details or {})
        super().__init__(message, merged)
