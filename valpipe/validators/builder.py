"""
Fluent validator builder and validator factories.

Usage:
    validator = (
        create_validator("compound")
        .add_validator(formula_validator)
        .add_rule(create_range_rule("mass", 0, 1000))
        .with_priority(10)
        .with_timeout(2000)
        .build()
    )
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from ..errors import ConfigurationError
from ..taxonomy import Rule, Validator
from .base import CanValidateFn, ConfigInput, FunctionValidator, ValidateFn
from .composite import CompositeValidator, RuleSetValidator

logger = logging.getLogger(__name__)


class ValidatorBuilder:
    """Collects validators, rules and config, then builds one validator."""

    def __init__(self, name: str):
        self._name = name
        self._validators: List[Validator] = []
        self._rules: List[Rule] = []
        self._config: Dict[str, Any] = {}

    def add_validator(self, validator: Validator) -> "ValidatorBuilder":
        self._validators.append(validator)
        return self

    def add_rule(self, rule: Rule) -> "ValidatorBuilder":
        self._rules.append(rule)
        return self

    def with_config(self, **config: Any) -> "ValidatorBuilder":
        self._config.update(config)
        return self

    def with_name(self, name: str) -> "ValidatorBuilder":
        self._name = name
        return self

    def with_priority(self, priority: int) -> "ValidatorBuilder":
        self._config["priority"] = priority
        return self

    def with_caching(self, enabled: bool) -> "ValidatorBuilder":
        self._config["cacheable"] = enabled
        return self

    def with_timeout(self, timeout_ms: Optional[float]) -> "ValidatorBuilder":
        self._config["timeout"] = timeout_ms
        return self

    def build(self) -> Validator:
        """
        Build the validator.

        A lone validator with no rules and no config is returned as-is;
        anything else is wrapped in a CompositeValidator carrying the
        collected config. Rules are grouped into one RuleSetValidator.

        Raises:
            ConfigurationError: nothing was added
        """
        parts: List[Validator] = list(self._validators)
        if self._rules:
            parts.append(RuleSetValidator(f"{self._name}.rules", self._rules))

        if not parts:
            raise ConfigurationError(
                "Cannot build validator without any validators or rules",
                code="VALIDATION_EMPTY_BUILDER",
                details={"name": self._name},
            )

        if len(parts) == 1 and not self._rules and not self._config:
            return parts[0]

        logger.debug(f"Building composite validator '{self._name}' from {len(parts)} part(s)")
        return CompositeValidator(self._name, parts, self._config)


def create_validator(name: str) -> ValidatorBuilder:
    return ValidatorBuilder(name)


def create_composite_validator(
    name: str,
    validators: Sequence[Validator],
    config: ConfigInput = None,
) -> CompositeValidator:
    return CompositeValidator(name, validators, config)


def create_function_validator(
    name: str,
    validate_fn: ValidateFn,
    can_validate_fn: Optional[CanValidateFn] = None,
    config: ConfigInput = None,
    dependencies: Optional[Iterable[str]] = None,
) -> FunctionValidator:
    """Validator from `validate_fn(value, context)` (sync or async)."""
    return FunctionValidator(name, validate_fn, can_validate_fn, config, dependencies)
