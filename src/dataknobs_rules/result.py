"""Validation outcome types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .exceptions import ValidationFailure
from .rules import Severity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FieldError:
    """One failed rule for one field.

    The timestamp is taken when the error is constructed.
    """

    field_name: str
    code: str
    message: str
    severity: Severity
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_failure(cls, field_name: str, failure: ValidationFailure) -> FieldError:
        """Create an error entry from a rule's failure."""
        return cls(
            field_name=field_name,
            code=failure.code,
            message=failure.message,
            severity=failure.severity,
        )

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field_name,
            "code": self.code,
            "message": self.message,
            "severity": self.severity.name,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Aggregated outcome of validating one record.

    Results are immutable. A failure to persist the result does not change the
    validation outcome; it is reported through ``persistence_error`` instead.

    Attributes:
        data_type: Name of the record type that was validated
        errors: Errors in the order their fields were declared in the rule set
        persistence_error: Exception raised by the error repository, if any
    """

    data_type: str = ""
    errors: tuple[FieldError, ...] = ()
    persistence_error: Exception | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.errors, tuple):
            object.__setattr__(self, "errors", tuple(self.errors))

    @property
    def is_valid(self) -> bool:
        """True when no rule failed."""
        return not self.errors

    @property
    def has_critical_error(self) -> bool:
        """True when at least one error is CRITICAL."""
        return any(error.is_critical for error in self.errors)

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None

    def __bool__(self) -> bool:
        """Allow 'if result:' usage to check validity."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self.errors)

    def errors_for(self, field_name: str) -> list[FieldError]:
        """Errors reported for a single field."""
        return [error for error in self.errors if error.field_name == field_name]

    def with_severity(self, severity: Severity | str) -> list[FieldError]:
        """Errors with exactly the given severity."""
        severity = Severity.parse(severity)
        return [error for error in self.errors if error.severity is severity]

    @property
    def max_severity(self) -> Severity | None:
        if not self.errors:
            return None
        return max(error.severity for error in self.errors)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "data_type": self.data_type,
            "valid": self.is_valid,
            "has_critical_error": self.has_critical_error,
            "errors": [error.to_dict() for error in self.errors],
        }
        if self.persistence_error is not None:
            data["persistence_error"] = str(self.persistence_error)
        return data


__all__ = ["FieldError", "ValidationResult"]
