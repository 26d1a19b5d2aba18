"""
Error types for the notification routing server.

This module defines the exceptions raised by the core and the store:
- RoutingError: Base exception
- ValidationError: Malformed input, rejected before reaching storage
- NotFoundError: Target of a non-idempotent operation does not exist
- StorageError: Persistence failure (SQLite)
- StorageTimeoutError: Storage deadline or lock wait exceeded

Invariants:
    - All errors inherit from RoutingError
    - Idempotent operations report absence as False or an empty list, not NotFoundError
    - The core never retries; StorageError is propagated unchanged
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RoutingError(Exception):
    """Base exception for all routing errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ROUTING_ERROR"
        self.details = details or {}


class ValidationError(RoutingError):
    """Input validation failed.

    Raised when:
    - An identifier list contains an empty value
    - An identifier list contains the same endpoint twice
    - A referenced endpoint is not part of the tenant
    - A required display name is blank
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class NotFoundError(RoutingError):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class StorageError(RoutingError):
    """Persistence layer failure."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


class StorageTimeoutError(StorageError):
    """Storage operation exceeded its deadline.

    Raised when:
    - The caller's timeout elapses before the operation completes
    - SQLite gives up waiting for a write lock (busy timeout)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.code = "STORAGE_TIMEOUT"
        self.details["timeout"] = timeout
        self.timeout = timeout
