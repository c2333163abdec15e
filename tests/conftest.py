"""Pytest configuration for dataknobs_rules tests."""

import sys
from pathlib import Path

import pytest

# Add the package source to path for testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from dataknobs_rules import (  # noqa: E402
    ComplexityRule,
    EmailRule,
    MemoryErrorRepository,
    RangeRule,
    RuleSet,
    RuleSetRegistry,
    ValidationConfig,
    ValidationEngine,
)


@pytest.fixture
def user_rule_set():
    """Reference rules for the 'user' data type."""
    return (
        RuleSet.builder("user")
        .add_rule("email", EmailRule())
        .add_rule("password", ComplexityRule(min_length=8, require_special_char=True))
        .add_rule("age", RangeRule(0, 120))
        .build()
    )


@pytest.fixture
def registry(user_rule_set):
    """Registry with the user rule set registered."""
    registry = RuleSetRegistry()
    registry.register("user", user_rule_set)
    return registry


@pytest.fixture
def repository():
    """Empty in-memory error repository."""
    return MemoryErrorRepository()


@pytest.fixture
def engine(registry, repository):
    """Engine that persists results into the repository."""
    config = ValidationConfig(parallelism=4, persist_errors=True)
    return ValidationEngine(registry, config, repository)
