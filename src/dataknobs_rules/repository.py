"""Error repositories: sinks for validation results keyed by data type."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .result import FieldError, ValidationResult

logger = logging.getLogger(__name__)


class ErrorRepository(ABC):
    """Persistence interface for validation results.

    Implementations must tolerate concurrent calls from several engines or
    threads. Failures should be raised (ideally as PersistenceError); the
    engine logs them without changing the validation outcome.
    """

    @abstractmethod
    def save_errors(self, data_type: str, result: ValidationResult) -> None:
        """Store the errors of one validation result.

        Args:
            data_type: Record type the result belongs to
            result: Result whose errors are appended to the store
        """
        pass


class MemoryErrorRepository(ErrorRepository):
    """Thread-safe in-memory error log, append-only per data type."""

    def __init__(self) -> None:
        self._errors: dict[str, list[FieldError]] = {}
        self._lock = threading.Lock()

    def save_errors(self, data_type: str, result: ValidationResult) -> None:
        with self._lock:
            self._errors.setdefault(data_type, []).extend(result.errors)
        logger.debug(f"Stored {len(result.errors)} errors for '{data_type}'")

    def errors(self) -> Mapping[str, tuple[FieldError, ...]]:
        """Read-only snapshot of all stored errors by data type."""
        with self._lock:
            snapshot = {data_type: tuple(errors) for data_type, errors in self._errors.items()}
        return MappingProxyType(snapshot)

    def errors_for(self, data_type: str) -> tuple[FieldError, ...]:
        with self._lock:
            return tuple(self._errors.get(data_type, ()))

    def count(self, data_type: str | None = None) -> int:
        """Number of stored errors, for one data type or overall."""
        with self._lock:
            if data_type is not None:
                return len(self._errors.get(data_type, ()))
            return sum(len(errors) for errors in self._errors.values())

    def clear(self) -> int:
        """Remove all stored errors and return how many there were."""
        with self._lock:
            count = sum(len(errors) for errors in self._errors.values())
            self._errors.clear()
            return count


__all__ = ["ErrorRepository", "MemoryErrorRepository"]
