"""Field-level validation rules.

A rule is any object exposing ``validate(value)`` that returns ``None`` when the
value is acceptable and raises :class:`ValidationFailure` when it is not. Rules
are frozen dataclasses holding only their parameters, so a single instance can
be shared across rule sets and worker threads.

Example:
    ```python
    from dataknobs_rules.rules import EmailRule, RangeRule

    EmailRule().validate("alice@example.com")   # passes
    RangeRule(0, 120).validate(150)             # raises ValidationFailure(RANGE_002)
    ```
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .exceptions import ValidationFailure

if TYPE_CHECKING:
    from collections.abc import Callable


class Severity(Enum):
    """Importance of a validation error, ordered INFO < WARNING < CRITICAL.

    Only CRITICAL errors can trigger the engine's stop-on-critical behavior.
    """

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def level(self) -> int:
        return _SEVERITY_LEVELS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level >= other.level

    @classmethod
    def parse(cls, value: Severity | str) -> Severity:
        """Resolve a severity from an enum member or a case-insensitive name.

        Raises:
            ValueError: If the name is not a known severity
        """
        if isinstance(value, Severity):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError as e:
            raise ValueError(f"Unknown severity: {value}") from e


_SEVERITY_LEVELS = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


@runtime_checkable
class Rule(Protocol):
    """Capability shared by all rules."""

    def validate(self, value: Any) -> None:
        """Check a single value.

        Raises:
            ValidationFailure: If the value violates the rule
        """
        ...


def _is_numeric(value: Any) -> bool:
    # bool is an int subclass but never a meaningful quantity here
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,6}$", re.IGNORECASE)

SPECIAL_CHARACTERS = "!@#$%^&*()"


@dataclass(frozen=True)
class EmailRule:
    """Value must be present and look like ``local@domain.tld``."""

    def validate(self, value: Any) -> None:
        if value is None:
            raise ValidationFailure("EMAIL_001", "Email address is required", Severity.CRITICAL)

        email = str(value)
        if not EMAIL_PATTERN.fullmatch(email):
            raise ValidationFailure("EMAIL_002", f"Invalid email format: {email}", Severity.CRITICAL)


@dataclass(frozen=True)
class RangeRule:
    """Numeric value must fall within ``[min, max]`` (inclusive).

    A missing value passes; combine with :class:`RequiredRule` to demand one.
    """

    min: float
    max: float

    def __post_init__(self) -> None:
        if float(self.min) > float(self.max):
            raise ValueError(f"min ({self.min}) cannot be greater than max ({self.max})")

    def validate(self, value: Any) -> None:
        if value is None:
            return

        if not _is_numeric(value):
            raise ValidationFailure(
                "RANGE_001",
                f"Numeric value required, got {type(value).__name__}",
                Severity.CRITICAL,
            )

        number = float(value)
        if number < float(self.min) or number > float(self.max):
            raise ValidationFailure(
                "RANGE_002",
                f"Value {value} is out of range ({self.min} - {self.max})",
                Severity.WARNING,
            )


@dataclass(frozen=True)
class ComplexityRule:
    """Password complexity: minimum length and an optional special character."""

    min_length: int = 8
    require_special_char: bool = True

    def validate(self, value: Any) -> None:
        if value is None:
            raise ValidationFailure("PWD_001", "Password is required", Severity.CRITICAL)

        password = str(value)
        if len(password) < self.min_length:
            raise ValidationFailure(
                "PWD_002",
                f"Password too short: at least {self.min_length} characters required",
                Severity.CRITICAL,
            )

        if self.require_special_char and not any(c in SPECIAL_CHARACTERS for c in password):
            raise ValidationFailure(
                "PWD_003",
                f"Password should contain one of {SPECIAL_CHARACTERS}",
                Severity.WARNING,
            )


@dataclass(frozen=True)
class RequiredRule:
    """Value must be present and, unless ``allow_empty``, non-empty."""

    allow_empty: bool = False

    def validate(self, value: Any) -> None:
        if value is None:
            raise ValidationFailure("REQ_001", "Value is required", Severity.CRITICAL)

        if not self.allow_empty and isinstance(value, (str, list, dict, set, tuple)) and len(value) == 0:
            raise ValidationFailure("REQ_002", "Value cannot be empty", Severity.CRITICAL)


@dataclass(frozen=True)
class LengthRule:
    """String or collection length must be within the given bounds."""

    min: int | None = None
    max: int | None = None
    severity: Severity = Severity.WARNING

    def __post_init__(self) -> None:
        if self.min is not None and self.min < 0:
            raise ValueError(f"min length cannot be negative: {self.min}")
        if self.max is not None and self.max < 0:
            raise ValueError(f"max length cannot be negative: {self.max}")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min length ({self.min}) cannot be greater than max ({self.max})")

    def validate(self, value: Any) -> None:
        if value is None:
            return

        if not hasattr(value, "__len__"):
            raise ValidationFailure(
                "LEN_001",
                f"Value does not have a length: {type(value).__name__}",
                Severity.CRITICAL,
            )

        length = len(value)
        if self.min is not None and length < self.min:
            raise ValidationFailure(
                "LEN_002", f"Length {length} is less than minimum {self.min}", self.severity
            )
        if self.max is not None and length > self.max:
            raise ValidationFailure(
                "LEN_002", f"Length {length} is greater than maximum {self.max}", self.severity
            )


@dataclass(frozen=True)
class PatternRule:
    """String value must fully match a regular expression."""

    pattern: str
    code: str = "PATTERN_001"
    severity: Severity = Severity.CRITICAL
    flags: int = 0
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # frozen dataclass: bypass __setattr__ for the derived attribute
        object.__setattr__(self, "regex", re.compile(self.pattern, self.flags))

    def validate(self, value: Any) -> None:
        if value is None:
            return

        if not isinstance(value, str):
            raise ValidationFailure(
                "PATTERN_000",
                f"String value required for pattern matching, got {type(value).__name__}",
                Severity.CRITICAL,
            )

        if not self.regex.fullmatch(value):
            raise ValidationFailure(
                self.code, f"Value '{value}' does not match pattern '{self.pattern}'", self.severity
            )


@dataclass(frozen=True)
class ChoiceRule:
    """Value must be one of a fixed set of choices."""

    choices: tuple[Any, ...]
    case_sensitive: bool = True

    def __post_init__(self) -> None:
        if not self.choices:
            raise ValueError("ChoiceRule requires at least one allowed value")
        object.__setattr__(self, "choices", tuple(self.choices))

    def validate(self, value: Any) -> None:
        if value is None:
            return

        if self.case_sensitive:
            allowed = value in self.choices
        else:
            folded = value.lower() if isinstance(value, str) else value
            allowed = any(
                (c.lower() if isinstance(c, str) else c) == folded for c in self.choices
            )

        if not allowed:
            choices = ", ".join(repr(c) for c in self.choices)
            raise ValidationFailure(
                "CHOICE_001", f"Value '{value}' is not one of: {choices}", Severity.CRITICAL
            )


@dataclass(frozen=True)
class FunctionRule:
    """Adapts a plain predicate into a rule.

    The predicate returns True when the value is acceptable. It may also raise
    :class:`ValidationFailure` itself to report a more specific failure.
    """

    func: Callable[[Any], bool]
    code: str = "CUSTOM_001"
    message: str = "Custom validation failed"
    severity: Severity = Severity.CRITICAL

    def validate(self, value: Any) -> None:
        if not self.func(value):
            raise ValidationFailure(self.code, self.message, self.severity)


__all__ = [
    "Severity",
    "Rule",
    "EmailRule",
    "RangeRule",
    "ComplexityRule",
    "RequiredRule",
    "LengthRule",
    "PatternRule",
    "ChoiceRule",
    "FunctionRule",
    "EMAIL_PATTERN",
    "SPECIAL_CHARACTERS",
]
