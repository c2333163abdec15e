"""Execution policy for the validation engine.

A :class:`ValidationConfig` is an immutable snapshot that can be shared by any
number of engine calls. It can be built directly, from a dictionary, from the
``validation`` section of a dataknobs configuration file, or from environment
variables.

Example configuration file (validation.yaml):
    ```yaml
    validation:
      parallelism: 4
      stop_on_critical: true
      persist_errors: true
      strict_types: false
      timeout: 2.5
    ```

Environment variable format (dataknobs_config overrides):
    DATAKNOBS_VALIDATION__0__<ATTRIBUTE>, e.g.
    ``DATAKNOBS_VALIDATION__0__PARALLELISM=8`` or
    ``DATAKNOBS_VALIDATION__0__STOP_ON_CRITICAL=false``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml
from dataknobs_common import DataknobsError
from dataknobs_config import Config
from dataknobs_config.environment import EnvironmentOverrides

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_SECTION = "validation"

# Keys dataknobs_config adds to every atomic configuration
CONFIG_KEYS = ("type", "name")


def default_parallelism() -> int:
    """Concurrency reported by the host, at least 1."""
    return os.cpu_count() or 1


def load_config(source: Union[str, Path, Mapping[str, Any]]) -> Config:
    """Load a dataknobs :class:`Config` from a YAML/JSON file or a dictionary.

    Environment overrides are not applied here; see
    :meth:`ValidationConfig.from_env`.

    Raises:
        ConfigurationError: If the file is missing, unparseable or malformed
    """
    try:
        if isinstance(source, Mapping):
            return Config(dict(source), use_env=False)
        return Config(source, use_env=False)
    except ConfigurationError:
        raise
    except (DataknobsError, yaml.YAMLError, json.JSONDecodeError, AttributeError, TypeError) as e:
        raise ConfigurationError(
            f"Cannot load configuration from {source}: {e}", context={"source": str(source)}
        ) from e


def section_configs(config: Config, type_name: str) -> List[Dict[str, Any]]:
    """All atomic configurations of one type, in file order."""
    return [config.get(type_name, index) for index in range(config.get_count(type_name))]


def _coerce_env_value(attribute: str, value: Any) -> Any:
    # "1" and "0" parse as booleans
    if attribute in ("parallelism", "timeout") and isinstance(value, bool):
        return int(value)
    if attribute == "timeout" and isinstance(value, str) and value.lower() in ("none", "null", ""):
        return None
    return value


@dataclass(frozen=True)
class ValidationConfig:
    """Validation engine execution policy.

    Attributes:
        parallelism: Maximum number of fields validated at once (>= 1).
            Defaults to the host's reported CPU count.
        stop_on_critical: Stop scheduling further fields once a field has
            produced a CRITICAL error.
        persist_errors: Hand each result to the engine's error repository.
        strict_types: Raise RuleSetNotFoundError for unregistered data types.
            When False, such records validate with zero checks.
        timeout: Seconds allowed for one validate call, or None for no limit.
    """

    parallelism: int = field(default_factory=default_parallelism)
    stop_on_critical: bool = True
    persist_errors: bool = False
    strict_types: bool = True
    timeout: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.parallelism, bool) or not isinstance(self.parallelism, int):
            raise ConfigurationError(
                f"parallelism must be an integer, got {self.parallelism!r}",
                context={"parameter": "parallelism"},
            )
        if self.parallelism < 1:
            raise ConfigurationError(
                f"parallelism must be at least 1, got {self.parallelism}",
                context={"parameter": "parallelism"},
            )
        if self.timeout is not None and (
            isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float))
        ):
            raise ConfigurationError(
                f"timeout must be a number, got {self.timeout!r}",
                context={"parameter": "timeout"},
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be positive if specified, got {self.timeout}",
                context={"parameter": "timeout"},
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ValidationConfig:
        """Create a config from a dictionary.

        A nested ``validation`` section is used when present. Unknown keys
        raise ConfigurationError.
        """
        section = data.get(CONFIG_SECTION, data)
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"'{CONFIG_SECTION}' section must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown validation settings: {', '.join(sorted(unknown))}",
                context={"unknown": sorted(unknown), "known": sorted(known)},
            )
        return cls(**dict(section))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ValidationConfig:
        """Create a config from the ``validation`` section of a YAML or JSON file.

        A file without that section yields the default config.
        """
        sections = section_configs(load_config(path), CONFIG_SECTION)
        settings: Dict[str, Any] = {}
        if sections:
            settings = {k: v for k, v in sections[0].items() if k not in CONFIG_KEYS}
        config = cls.from_dict(settings)
        logger.debug(f"Loaded validation config from {path}: {config}")
        return config

    @classmethod
    def from_env(
        cls,
        base: ValidationConfig | None = None,
        prefix: str | None = None,
    ) -> ValidationConfig:
        """Overlay environment variable overrides on a base config.

        Only overrides of the first ``validation`` configuration
        (``<prefix>VALIDATION__0__<ATTRIBUTE>``) apply.

        Args:
            base: Config to start from (defaults to ValidationConfig())
            prefix: Environment variable prefix (defaults to ``DATAKNOBS_``)

        Returns:
            New config with environment overrides applied
        """
        env = EnvironmentOverrides(prefix)
        known = {f.name for f in fields(cls)}
        overrides: Dict[str, Any] = {}

        for ref, value in env.get_overrides().items():
            type_name, name_or_index, attribute = env.parse_env_reference(ref)
            if type_name != CONFIG_SECTION or name_or_index != 0:
                continue
            if attribute not in known:
                logger.warning(f"Ignoring unknown validation setting from environment: {ref}")
                continue
            overrides[attribute] = _coerce_env_value(attribute, value)

        return (base or cls()).with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> ValidationConfig:
        """Copy of this config with some attributes replaced."""
        if not overrides:
            return self
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "ValidationConfig",
    "CONFIG_SECTION",
    "CONFIG_KEYS",
    "default_parallelism",
    "load_config",
    "section_configs",
]
