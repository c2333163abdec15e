"""DataKnobs Rules Package - Rule-based record validation.

The `dataknobs-rules` package validates named records (field to value
mappings) against per-field rules registered for their data type. It collects
structured errors with severities, can stop early on critical failures, runs
fields concurrently on a bounded thread pool, and can hand results to a
pluggable error repository.

Modules:
    rules: Rule capability, Severity and the built-in rules
    ruleset: RuleSet and its builder
    result: FieldError and ValidationResult
    config: ValidationConfig execution policy
    registry: RuleSetRegistry lookup by data type
    repository: ErrorRepository interface and in-memory implementation
    engine: ValidationEngine orchestration
    factory: Build rules and rule sets from configuration
    conversion: CSV to JSON conversion helpers
    exceptions: Exception hierarchy

Quick Example:

    ```python
    from dataknobs_rules import (
        ComplexityRule, EmailRule, RangeRule, RuleSet, ValidationEngine,
    )

    engine = ValidationEngine().register(
        "user",
        RuleSet.builder("user")
        .add_rule("email", EmailRule())
        .add_rule("password", ComplexityRule(min_length=8, require_special_char=True))
        .add_rule("age", RangeRule(0, 120))
        .build(),
    )

    result = engine.validate("user", {"email": "test@example.com", "password": "weak", "age": 150})
    result.is_valid            # False
    result.has_critical_error  # True
    ```
"""

from .config import ValidationConfig
from .conversion import CsvJsonConverter, load_records, transform_lines
from .engine import ValidationEngine, validate_field
from .exceptions import (
    BatchProcessingError,
    ConfigurationError,
    InvalidFormatError,
    NotFoundError,
    OperationError,
    PersistenceError,
    ResourceError,
    RuleSetNotFoundError,
    RulesError,
    ValidationFailure,
    ValidationTimeoutError,
)
from .factory import RuleFactory, RuleSetFactory, load_rule_sets
from .registry import RuleSetRegistry
from .repository import ErrorRepository, MemoryErrorRepository
from .result import FieldError, ValidationResult
from .rules import (
    ChoiceRule,
    ComplexityRule,
    EmailRule,
    FunctionRule,
    LengthRule,
    PatternRule,
    RangeRule,
    RequiredRule,
    Rule,
    Severity,
)
from .ruleset import RuleSet, RuleSetBuilder

__version__ = "0.1.0"

__all__ = [
    # Rules
    "Rule",
    "Severity",
    "EmailRule",
    "RangeRule",
    "ComplexityRule",
    "RequiredRule",
    "LengthRule",
    "PatternRule",
    "ChoiceRule",
    "FunctionRule",
    # Rule sets
    "RuleSet",
    "RuleSetBuilder",
    "RuleSetRegistry",
    # Results
    "FieldError",
    "ValidationResult",
    # Engine
    "ValidationConfig",
    "ValidationEngine",
    "validate_field",
    # Persistence
    "ErrorRepository",
    "MemoryErrorRepository",
    # Factories
    "RuleFactory",
    "RuleSetFactory",
    "load_rule_sets",
    # Conversion
    "CsvJsonConverter",
    "load_records",
    "transform_lines",
    # Exceptions
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
