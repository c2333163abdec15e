"""Custom exceptions for the dataknobs_rules package.

This module defines exception types for the rules package,
built on the common exception framework from dataknobs_common.

Example:
    ```python
    from dataknobs_rules.exceptions import RulesError, RuleSetNotFoundError

    try:
        engine.validate("user", record)
    except RuleSetNotFoundError as e:
        logger.error(f"No rules for {e.data_type}: {e.context}")
    except RulesError as e:
        logger.error(f"Validation setup failed: {e}")
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dataknobs_common import (
    ConfigurationError,
    DataknobsError,
    NotFoundError,
    OperationError,
    ResourceError,
    TimeoutError as BaseTimeoutError,
    ValidationError,
)

if TYPE_CHECKING:
    from .rules import Severity

# Package-level alias so callers can catch every rules error in one place
RulesError = DataknobsError


class ValidationFailure(ValidationError):
    """Raised by a rule when a value violates it.

    The engine converts these into FieldError entries; they never escape
    ``ValidationEngine.validate``.
    """

    def __init__(self, code: str, message: str, severity: Severity):
        self.code = code
        self.message = message
        self.severity = severity
        super().__init__(message, context={"code": code, "severity": severity.name})


class RuleSetNotFoundError(NotFoundError):
    """Raised when no rule set is registered for a data type."""

    def __init__(self, data_type: str, available: list[str] | None = None):
        self.data_type = data_type
        self.available = available or []
        message = f"No rules registered for data type '{data_type}'"
        if self.available:
            message += f". Registered types: {', '.join(sorted(self.available))}"
        super().__init__(message, context={"data_type": data_type, "available": self.available})


class PersistenceError(ResourceError):
    """Raised by error repositories when a result cannot be stored."""

    def __init__(self, data_type: str, message: str):
        self.data_type = data_type
        super().__init__(
            f"Failed to persist errors for '{data_type}': {message}",
            context={"data_type": data_type},
        )


class BatchProcessingError(ResourceError):
    """Raised when a file conversion batch fails."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message, context={"path": path} if path else None)


class InvalidFormatError(BatchProcessingError):
    """Raised when an input file does not have the expected format."""

    pass


class ValidationTimeoutError(BaseTimeoutError):
    """Raised when a validation call exceeds its configured timeout."""

    def __init__(self, data_type: str, timeout: float, pending_fields: list[str]):
        self.data_type = data_type
        self.timeout = timeout
        self.pending_fields = pending_fields
        super().__init__(
            f"Validation of '{data_type}' timed out after {timeout}s",
            context={"data_type": data_type, "timeout": timeout, "pending_fields": pending_fields},
        )


__all__ = [
    "RulesError",
    "ValidationFailure",
    "ConfigurationError",
    "NotFoundError",
    "RuleSetNotFoundError",
    "OperationError",
    "ResourceError",
    "PersistenceError",
    "BatchProcessingError",
    "InvalidFormatError",
    "ValidationTimeoutError",
]
