"""
Error taxonomy for the search gateway.

Usage:
    from search_gateway.exceptions import ErrorKind, SearchServiceError

    raise SearchServiceError(ErrorKind.VALIDATION, "The entityName is not provided.")
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the search core."""

    VALIDATION = "VALIDATION"
    FORBIDDEN = "FORBIDDEN"
    DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"
    PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"


# HTTP status per error kind. Partial batch failures never reach a caller
# as an error, they are logged and counted.
HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.DEPENDENCY_FAILURE: 503,
    ErrorKind.PARTIAL_BATCH_FAILURE: 500,
}


class SearchServiceError(Exception):
    """Base exception carrying an error kind and structured context."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        entity_name: Optional[str] = None,
        index_name: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.entity_name = entity_name
        self.index_name = index_name
        self.cause = cause
        super().__init__(f"[{kind.value}] {message}")

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary. The underlying cause is not exposed."""
        details: dict[str, Any] = {}
        if self.entity_name:
            details["entityName"] = self.entity_name
        if self.index_name:
            details["indexName"] = self.index_name
        return {
            "code": self.kind.value,
            "message": self.message,
            "details": details,
        }


def validation_error(message: str, **context: Any) -> SearchServiceError:
    return SearchServiceError(ErrorKind.VALIDATION, message, **context)


def forbidden_error(message: str, **context: Any) -> SearchServiceError:
    return SearchServiceError(ErrorKind.FORBIDDEN, message, **context)


def dependency_error(message: str, **context: Any) -> SearchServiceError:
    return SearchServiceError(ErrorKind.DEPENDENCY_FAILURE, message, **context)
