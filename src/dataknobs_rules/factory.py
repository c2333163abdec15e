"""Factories that build rules and rule sets from configuration.

Example Configuration (rules.yaml):
    ```yaml
    rule_sets:
      - name: user
        fields:
          email:
            - type: email
          password:
            - type: complexity
              min_length: 8
              require_special_char: true
          age:
            - type: range
              min: 0
              max: 120
    ```

Rule Types:
    email, range (min, max), complexity (min_length, require_special_char),
    required (allow_empty), length (min, max, severity),
    pattern (pattern, code, severity, ignore_case), choice (choices, case_sensitive).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Union

from .config import load_config, section_configs
from .exceptions import ConfigurationError
from .registry import RuleSetRegistry
from .rules import (
    ChoiceRule,
    ComplexityRule,
    EmailRule,
    LengthRule,
    PatternRule,
    RangeRule,
    RequiredRule,
    Rule,
    Severity,
)
from .ruleset import RuleSet

logger = logging.getLogger(__name__)

RULE_SETS_SECTION = "rule_sets"

RuleBuilder = Callable[..., Rule]


def _build_length(min: int | None = None, max: int | None = None, severity: str = "warning") -> Rule:
    return LengthRule(min=min, max=max, severity=Severity.parse(severity))


def _build_pattern(
    pattern: str,
    code: str = "PATTERN_001",
    severity: str = "critical",
    ignore_case: bool = False,
) -> Rule:
    return PatternRule(
        pattern,
        code=code,
        severity=Severity.parse(severity),
        flags=re.IGNORECASE if ignore_case else 0,
    )


def _build_choice(choices: List[Any], case_sensitive: bool = True) -> Rule:
    return ChoiceRule(tuple(choices), case_sensitive=case_sensitive)


class RuleFactory:
    """Creates rules from ``{"type": ..., **params}`` configurations.

    Additional rule types can be added with :meth:`register_type`.
    """

    def __init__(self) -> None:
        self._builders: Dict[str, RuleBuilder] = {
            "email": EmailRule,
            "range": RangeRule,
            "complexity": ComplexityRule,
            "password": ComplexityRule,
            "required": RequiredRule,
            "length": _build_length,
            "pattern": _build_pattern,
            "choice": _build_choice,
            "enum": _build_choice,
        }

    def register_type(self, rule_type: str, builder: RuleBuilder) -> None:
        """Make a rule type available to configurations.

        Args:
            rule_type: Name used in the ``type`` key (case-insensitive)
            builder: Callable taking the remaining keys as keyword arguments
        """
        self._builders[rule_type.lower()] = builder

    @property
    def rule_types(self) -> List[str]:
        return sorted(self._builders)

    def create(self, **config: Any) -> Rule:
        """Create a rule from configuration.

        Raises:
            ConfigurationError: If the type is unknown or its parameters are invalid
        """
        rule_type = str(config.pop("type", "")).lower()
        builder = self._builders.get(rule_type)
        if builder is None:
            raise ConfigurationError(
                f"Unknown rule type: {rule_type or '<missing>'}",
                context={"type": rule_type, "available": self.rule_types},
            )

        try:
            return builder(**config)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid parameters for rule type '{rule_type}': {e}",
                context={"type": rule_type, "parameters": config},
            ) from e


class RuleSetFactory:
    """Creates rule sets from configuration.

    Configuration Options:
        name (str): Rule set name
        fields (dict): Field name to list of rule configurations
    """

    def __init__(self, rule_factory: RuleFactory | None = None):
        self.rule_factory = rule_factory or RuleFactory()

    def create(self, **config: Any) -> RuleSet:
        name = config.get("name", "unnamed")
        fields = config.get("fields") or {}
        if not isinstance(fields, Mapping):
            raise ConfigurationError(
                f"'fields' of rule set '{name}' must be a mapping", context={"rule_set": name}
            )

        logger.info(f"Creating rule set: {name}")
        builder = RuleSet.builder(name)
        for field_name, rule_configs in fields.items():
            if isinstance(rule_configs, Mapping):
                rule_configs = [rule_configs]
            for rule_config in rule_configs or []:
                if isinstance(rule_config, str):
                    rule_config = {"type": rule_config}
                builder.add_rule(field_name, self.rule_factory.create(**dict(rule_config)))
        return builder.build()


def load_rule_sets(
    source: Union[str, Path, Mapping[str, Any]],
    registry: RuleSetRegistry | None = None,
    factory: RuleSetFactory | None = None,
) -> RuleSetRegistry:
    """Register every rule set described by a file or dictionary.

    Rule sets are the ``rule_sets`` configurations of a dataknobs
    :class:`~dataknobs_config.Config`; each one's ``name`` is the data type
    it is registered under.

    Args:
        source: YAML/JSON path, or a dict with a top-level ``rule_sets`` list
        registry: Registry to fill (a new one if omitted)
        factory: Rule set factory to use

    Returns:
        The filled registry
    """
    configs = section_configs(load_config(source), RULE_SETS_SECTION)
    if not configs:
        raise ConfigurationError(f"Configuration requires a '{RULE_SETS_SECTION}' section")

    registry = registry if registry is not None else RuleSetRegistry()
    factory = factory or RuleSetFactory()
    for config in configs:
        config.pop("type", None)
        rule_set = factory.create(**config)
        registry.register(rule_set.name, rule_set, allow_overwrite=True)
    return registry


rule_factory = RuleFactory()
rule_set_factory = RuleSetFactory(rule_factory)


__all__ = [
    "RuleFactory",
    "RuleSetFactory",
    "load_rule_sets",
    "rule_factory",
    "rule_set_factory",
]
