"""Registry of rule sets by data type name.

Example:
    ```python
    from dataknobs_rules.registry import RuleSetRegistry

    registry = RuleSetRegistry()
    registry.register("user", user_rules)
    registry.get("user")        # user_rules
    registry.get("order")       # raises RuleSetNotFoundError
    ```
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from dataknobs_common import Registry

from .exceptions import RuleSetNotFoundError
from .ruleset import RuleSet

logger = logging.getLogger(__name__)


class RuleSetRegistry(Registry[RuleSet]):
    """Thread-safe mapping from data type name to :class:`RuleSet`.

    Lookups of unregistered types raise :class:`RuleSetNotFoundError`
    naming the types that are registered.
    """

    def __init__(self, name: str = "rule_sets", enable_metrics: bool = False):
        super().__init__(name, enable_metrics=enable_metrics)

    def register(
        self,
        key: str,
        item: RuleSet,
        metadata: Dict[str, Any] | None = None,
        allow_overwrite: bool = False,
    ) -> None:
        super().register(key, item, metadata=metadata, allow_overwrite=allow_overwrite)
        logger.info(f"Registered rule set for '{key}' with fields {list(item.fields)}")

    def get(self, key: str) -> RuleSet:
        with self._lock:
            if key not in self._items:
                raise RuleSetNotFoundError(key, list(self._items))
            return self._items[key]

    def unregister(self, key: str) -> RuleSet:
        with self._lock:
            if key not in self._items:
                raise RuleSetNotFoundError(key, list(self._items))
            return super().unregister(key)


__all__ = ["RuleSetRegistry"]
