"""Validation engine: runs a data type's rule set against records.

The engine looks up the rule set registered for a record's data type, runs
each field's rules on a bounded thread pool, and aggregates the failures into
a :class:`ValidationResult`.

Ordering:
    Rules of one field always run sequentially in declared order, and every
    rule of a field runs even after one of them fails. Field errors are merged
    in the rule set's field order, whatever order the fields finished in, so
    results are reproducible at any parallelism.

Stop on critical:
    Fields are scheduled in order until ``parallelism`` of them are in flight;
    the engine then waits for one to finish before scheduling the next. With
    ``stop_on_critical`` enabled, once a finished field has produced a CRITICAL
    error no further field is scheduled. Fields already running are allowed to
    finish and their errors are kept. With ``parallelism=1`` fields run one at
    a time, so nothing after the first critical field is scheduled; when
    ``parallelism`` is at least the number of fields, every field is scheduled.

Example:
    ```python
    from dataknobs_rules import (
        ComplexityRule, EmailRule, MemoryErrorRepository, RangeRule,
        RuleSet, ValidationConfig, ValidationEngine,
    )

    engine = ValidationEngine(
        config=ValidationConfig(persist_errors=True),
        repository=MemoryErrorRepository(),
    )
    engine.register(
        "user",
        RuleSet.builder("user")
        .add_rule("email", EmailRule())
        .add_rule("password", ComplexityRule(min_length=8, require_special_char=True))
        .add_rule("age", RangeRule(0, 120))
        .build(),
    )
    result = engine.validate("user", {"email": "test@example.com", "password": "weak", "age": 150})
    [e.code for e in result.errors]   # ['PWD_002', 'RANGE_002']
    ```
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, List

from .config import ValidationConfig
from .exceptions import ConfigurationError, ValidationFailure, ValidationTimeoutError
from .registry import RuleSetRegistry
from .result import FieldError, ValidationResult
from .rules import Severity

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .repository import ErrorRepository
    from .rules import Rule
    from .ruleset import RuleSet

logger = logging.getLogger(__name__)


def validate_field(field_name: str, rules: Sequence[Rule], value: Any) -> List[FieldError]:
    """Run a field's rules in order and collect every failure.

    A rule that raises anything other than ValidationFailure is reported as a
    CRITICAL ``RULE_ERROR`` for the field rather than aborting validation.
    """
    errors: List[FieldError] = []
    for rule in rules:
        try:
            rule.validate(value)
        except ValidationFailure as failure:
            errors.append(FieldError.from_failure(field_name, failure))
        except Exception as e:
            logger.exception(f"Rule {type(rule).__name__} failed unexpectedly on field '{field_name}'")
            errors.append(
                FieldError(
                    field_name=field_name,
                    code="RULE_ERROR",
                    message=f"{type(rule).__name__} raised {type(e).__name__}: {e}",
                    severity=Severity.CRITICAL,
                )
            )
    return errors


class ValidationEngine:
    """Validates records against the rule sets of their data types.

    Args:
        registry: Rule sets by data type (a new empty registry if omitted)
        config: Default execution policy (ValidationConfig() if omitted)
        repository: Sink for results when ``persist_errors`` is enabled

    Raises:
        ConfigurationError: If ``persist_errors`` is set without a repository
    """

    def __init__(
        self,
        registry: RuleSetRegistry | None = None,
        config: ValidationConfig | None = None,
        repository: ErrorRepository | None = None,
    ):
        self.registry = registry if registry is not None else RuleSetRegistry()
        self.config = config or ValidationConfig()
        self.repository = repository
        self._check_persistence(self.config)

    def register(self, data_type: str, rule_set: RuleSet, allow_overwrite: bool = False) -> ValidationEngine:
        """Register a rule set with the engine's registry (fluent API)."""
        self.registry.register(data_type, rule_set, allow_overwrite=allow_overwrite)
        return self

    def validate(
        self,
        data_type: str,
        record: Mapping[str, Any],
        config: ValidationConfig | None = None,
    ) -> ValidationResult:
        """Validate one record.

        Args:
            data_type: Name of the record's type in the registry
            record: Field name to value mapping; missing fields read as None
            config: Policy for this call only (defaults to the engine's config)

        Returns:
            ValidationResult with every collected error. If persisting the
            result failed, the exception is attached as ``persistence_error``.

        Raises:
            RuleSetNotFoundError: If the type is unknown and ``strict_types`` is set
            ValidationTimeoutError: If ``timeout`` elapsed before all fields finished
        """
        config = config or self.config
        if config is not self.config:
            self._check_persistence(config)

        rule_set = self._resolve(data_type, config)
        if rule_set is None:
            return ValidationResult(data_type=data_type)

        collected = self._run_fields(data_type, rule_set, record, config)
        errors = [
            error
            for field_name in rule_set.fields
            for error in collected.get(field_name, ())
        ]
        result = ValidationResult(data_type=data_type, errors=tuple(errors))
        logger.debug(
            f"Validated '{data_type}': {len(result.errors)} errors, "
            f"{len(collected)}/{len(rule_set.fields)} fields checked"
        )

        if config.persist_errors:
            result = self._persist(data_type, result)
        return result

    def validate_many(
        self,
        data_type: str,
        records: Iterable[Mapping[str, Any]],
        config: ValidationConfig | None = None,
    ) -> List[ValidationResult]:
        """Validate several records of the same type, one result per record."""
        return [self.validate(data_type, record, config) for record in records]

    def _check_persistence(self, config: ValidationConfig) -> None:
        if config.persist_errors and self.repository is None:
            raise ConfigurationError(
                "persist_errors is enabled but no error repository was given",
                context={"parameter": "persist_errors"},
            )

    def _resolve(self, data_type: str, config: ValidationConfig) -> RuleSet | None:
        if config.strict_types:
            return self.registry.get(data_type)

        rule_set = self.registry.get_optional(data_type)
        if rule_set is None:
            logger.warning(f"No rules registered for data type '{data_type}', nothing to validate")
        return rule_set

    def _run_fields(
        self,
        data_type: str,
        rule_set: RuleSet,
        record: Mapping[str, Any],
        config: ValidationConfig,
    ) -> Dict[str, List[FieldError]]:
        """Run field tasks with at most ``parallelism`` in flight."""
        collected: Dict[str, List[FieldError]] = {}
        if not rule_set.fields:
            return collected

        deadline = None if config.timeout is None else time.monotonic() + config.timeout
        pending: Dict[Future, str] = {}
        critical_seen = False

        executor = ThreadPoolExecutor(
            max_workers=min(config.parallelism, len(rule_set.fields)),
            thread_name_prefix=f"validate-{data_type}",
        )
        try:
            for field_name in rule_set.fields:
                while len(pending) >= config.parallelism and not (critical_seen and config.stop_on_critical):
                    critical_seen |= self._harvest(pending, collected, data_type, config, deadline)

                if critical_seen and config.stop_on_critical:
                    skipped = [f for f in rule_set.fields if f not in collected and f not in pending.values()]
                    logger.debug(f"Critical error in '{data_type}', skipping fields {skipped}")
                    break

                future = executor.submit(
                    validate_field, field_name, rule_set.rules_for(field_name), record.get(field_name)
                )
                pending[future] = field_name

            while pending:
                self._harvest(pending, collected, data_type, config, deadline)
        finally:
            # Everything is finished unless we timed out; don't wait on stuck rules.
            executor.shutdown(wait=False, cancel_futures=True)

        return collected

    @staticmethod
    def _harvest(
        pending: Dict[Future, str],
        collected: Dict[str, List[FieldError]],
        data_type: str,
        config: ValidationConfig,
        deadline: float | None,
    ) -> bool:
        """Wait for at least one field task and move finished ones into ``collected``.

        Returns:
            True if any harvested field produced a CRITICAL error
        """
        if not pending:
            return False

        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
        if not done:
            raise ValidationTimeoutError(data_type, config.timeout or 0.0, sorted(pending.values()))

        critical = False
        for future in done:
            field_name = pending.pop(future)
            errors = future.result()
            collected[field_name] = errors
            critical = critical or any(error.is_critical for error in errors)
        return critical

    def _persist(self, data_type: str, result: ValidationResult) -> ValidationResult:
        if self.repository is None:
            raise ConfigurationError("persist_errors is enabled but no error repository was given")
        try:
            self.repository.save_errors(data_type, result)
        except Exception as e:
            logger.exception(f"Failed to persist validation errors for '{data_type}'")
            return replace(result, persistence_error=e)
        return result


__all__ = ["ValidationEngine", "validate_field"]
