"""Rule sets: the per-field rules for one record type.

Rule sets are assembled with a :class:`RuleSetBuilder` and frozen by
:meth:`RuleSetBuilder.build`. A built :class:`RuleSet` cannot be changed, so
any number of validation threads may read it at once.

Example:
    ```python
    from dataknobs_rules.ruleset import RuleSet
    from dataknobs_rules.rules import ComplexityRule, EmailRule, RangeRule

    user_rules = (
        RuleSet.builder("user")
        .add_rule("email", EmailRule())
        .add_rule("password", ComplexityRule(min_length=8, require_special_char=True))
        .add_rule("age", RangeRule(0, 120))
        .build()
    )
    user_rules.fields          # ('email', 'password', 'age')
    user_rules.rules_for("x")  # ()
    ```
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from .rules import Rule


class RuleSet(Mapping[str, tuple[Rule, ...]]):
    """Immutable mapping from field name to the ordered rules for that field.

    Fields iterate in the order they first received a rule. A field that is
    not in the set has no rules and is never validated.
    """

    def __init__(self, name: str, field_rules: Mapping[str, tuple[Rule, ...]] | None = None):
        self._name = name
        self._field_rules = MappingProxyType(
            {field_name: tuple(rules) for field_name, rules in (field_rules or {}).items() if rules}
        )

    @classmethod
    def builder(cls, name: str = "unnamed") -> RuleSetBuilder:
        """Start building a new rule set."""
        return RuleSetBuilder(name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> tuple[str, ...]:
        """Names of fields with at least one rule."""
        return tuple(self._field_rules)

    def rules_for(self, field_name: str) -> tuple[Rule, ...]:
        """Rules for a field in declared order, empty if the field is unknown."""
        return self._field_rules.get(field_name, ())

    def extend(self) -> RuleSetBuilder:
        """Start a new builder pre-populated with this set's rules."""
        builder = RuleSetBuilder(self._name)
        for field_name, rules in self._field_rules.items():
            builder.add_rules(field_name, *rules)
        return builder

    def __getitem__(self, field_name: str) -> tuple[Rule, ...]:
        return self._field_rules[field_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._field_rules)

    def __len__(self) -> int:
        return len(self._field_rules)

    def __repr__(self) -> str:
        counts = ", ".join(f"{name}={len(rules)}" for name, rules in self._field_rules.items())
        return f"RuleSet({self._name!r}: {counts})"


class RuleSetBuilder:
    """Append-only builder for a :class:`RuleSet`."""

    def __init__(self, name: str = "unnamed"):
        self.name = name
        self._field_rules: dict[str, list[Rule]] = {}

    def add_rule(self, field_name: str, rule: Rule) -> RuleSetBuilder:
        """Append a rule for a field (fluent API).

        Args:
            field_name: Field the rule applies to
            rule: Rule to append after any existing rules for the field

        Returns:
            Self for chaining
        """
        if not isinstance(rule, Rule):
            raise TypeError(f"Rule for field '{field_name}' must define validate(value), got {type(rule).__name__}")
        self._field_rules.setdefault(field_name, []).append(rule)
        return self

    def add_rules(self, field_name: str, *rules: Rule) -> RuleSetBuilder:
        """Append several rules for a field, in order (fluent API)."""
        for rule in rules:
            self.add_rule(field_name, rule)
        return self

    @property
    def fields(self) -> list[str]:
        return list(self._field_rules)

    def build(self) -> RuleSet:
        """Freeze the collected rules into a :class:`RuleSet`.

        The builder can keep being used afterwards; later additions do not
        affect rule sets that were already built.
        """
        return RuleSet(self.name, {name: tuple(rules) for name, rules in self._field_rules.items()})


__all__ = ["RuleSet", "RuleSetBuilder"]
