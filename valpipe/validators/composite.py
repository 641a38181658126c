"""
Validator composition.

CompositeValidator runs a set of child validators; RuleSetValidator runs a
list of rules as one validator.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import logging
import time

from ..clock import elapsed_ms
from ..errors import ConfigurationError, ExecutionError
from ..taxonomy import (
    CacheStats,
    Rule,
    Severity,
    ValidationContext,
    ValidationError,
    ValidationMetrics,
    ValidationResult,
    ValidationSchema,
    Validator,
)
from .base import BaseValidator, ConfigInput

logger = logging.getLogger(__name__)


class CompositeValidator(BaseValidator):
    """
    Runs every applicable child validator sequentially and merges findings.

    A child that raises contributes a COMPOSITE_VALIDATOR_ERROR instead of
    aborting the others.
    """

    def __init__(
        self,
        name: str,
        validators: Sequence[Validator] = (),
        config: ConfigInput = None,
    ):
        super().__init__(name, config)
        self._children: Dict[str, Validator] = {}
        for validator in validators:
            self.add_validator(validator)

    @property
    def validators(self) -> List[Validator]:
        return list(self._children.values())

    def add_validator(self, validator: Validator) -> None:
        if validator.name in self._children:
            raise ConfigurationError(
                f"Validator '{validator.name}' already exists in composite",
                code="VALIDATION_DUPLICATE_VALIDATOR",
                details={"composite": self.name, "validator": validator.name},
            )
        self._children[validator.name] = validator

    def remove_validator(self, name: str) -> bool:
        return self._children.pop(name, None) is not None

    def get_validator(self, name: str) -> Optional[Validator]:
        return self._children.get(name)

    def can_validate(self, value: Any) -> bool:
        return any(v.can_validate(value) for v in self._children.values())

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult:
        started = time.perf_counter()
        applicable = [v for v in self._children.values() if v.can_validate(value)]
        if not applicable:
            return self.create_success_result()

        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []
        rules_executed = 0
        cache_stats = CacheStats()

        for validator in applicable:
            try:
                result = await validator.validate(value, context)
            except Exception as e:
                failure = ExecutionError.from_exception("Validator", validator.name, e)
                logger.warning(f"Composite '{self.name}': {failure.message}")
                errors.append(self.create_error(
                    "COMPOSITE_VALIDATOR_ERROR",
                    failure.message,
                    context.path,
                    suggestions=["Check validator configuration", "Verify input data"],
                    context={"validator": validator.name, "error": str(e)},
                ))
                continue

            errors.extend(result.errors)
            warnings.extend(result.warnings)
            rules_executed += result.metrics.rules_executed
            cache_stats.hits += result.metrics.cache_stats.hits
            cache_stats.misses += result.metrics.cache_stats.misses

        return ValidationResult.from_findings(
            errors=errors,
            warnings=warnings,
            metrics=ValidationMetrics(
                duration=elapsed_ms(started),
                rules_executed=rules_executed,
                validators_used=len(applicable),
                cache_stats=cache_stats,
            ),
        )

    def create_schema(self) -> ValidationSchema:
        child_schemas = [v.get_schema() for v in self._children.values()]
        types: Dict[str, None] = {}
        required: Dict[str, None] = {}
        optional: Dict[str, None] = {}
        for schema in child_schemas:
            types.update(dict.fromkeys(schema.types))
            required.update(dict.fromkeys(schema.required_validators))
            optional.update(dict.fromkeys(schema.optional_validators))

        return ValidationSchema(
            name=self.name,
            description=f"Composite schema for {self.name}",
            types=list(types) or ["any"],
            required_validators=list(required),
            optional_validators=list(optional),
            properties={
                "composite_of": list(self._children),
                "child_schemas": [s.to_dict() for s in child_schemas],
            },
        )


class RuleSetValidator(BaseValidator):
    """
    Runs rules in list order as a single validator.

    Failed rules with ERROR/CRITICAL severity become errors; lower
    severities become warnings.
    """

    def __init__(
        self,
        name: str,
        rules: Sequence[Rule],
        config: ConfigInput = None,
    ):
        super().__init__(name, config)
        self.rules: List[Rule] = list(rules)

    def can_validate(self, value: Any) -> bool:
        return any(rule.applies_to(value) for rule in self.rules)

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult:
        started = time.perf_counter()
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []
        executed = 0

        for rule in self.rules:
            if not rule.applies_to(value):
                continue
            result = await rule.execute(value, context)
            executed += 1
            if result.passed:
                continue
            error = result.error or self.create_error(
                "RULE_FAILED",
                f"Rule '{rule.name}' failed without reporting an error",
                context.path,
                context={"rule": rule.name},
            )
            (errors if error.severity >= Severity.ERROR else warnings).append(error)

        return ValidationResult.from_findings(
            errors=errors,
            warnings=warnings,
            metrics=ValidationMetrics(
                duration=elapsed_ms(started),
                rules_executed=executed,
                validators_used=1,
            ),
        )

    def create_schema(self) -> ValidationSchema:
        return ValidationSchema(
            name=self.name,
            description=f"Rule set {self.name}",
            properties={"rules": [rule.name for rule in self.rules]},
        )
