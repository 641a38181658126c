"""
Built-in rules and rule factories.
"""

from __future__ import annotations
from typing import Any, Optional, Pattern, Sequence, Union
import math
import numbers
import re

from ..taxonomy import Rule, RuleResult, ValidationContext
from .base import AsyncRule, AsyncRuleFn, SyncRule, SyncRuleFn
from .composite import CompositeOperator, CompositeRule, Condition, ConditionalRule


# =============================================================================
# RANGE
# =============================================================================

class RangeRule(SyncRule):
    """Finite real number within [min, max] (or (min, max) when exclusive)."""

    def __init__(
        self,
        name: str,
        min_value: float,
        max_value: float,
        *,
        inclusive: bool = True,
        priority: int = 0,
        cacheable: bool = True,
        dependencies: Optional[Sequence[str]] = None,
    ):
        super().__init__(
            name,
            f"Validate value is between {min_value} and {max_value}",
            priority=priority,
            cacheable=cacheable,
            dependencies=dependencies,
        )
        self.min_value = min_value
        self.max_value = max_value
        self.inclusive = inclusive

    def applies_to(self, value: Any) -> bool:
        return (
            isinstance(value, numbers.Real)
            and not isinstance(value, bool)
            and math.isfinite(value)
        )

    def validate_sync(self, value: Any, context: ValidationContext) -> RuleResult:
        if self.inclusive:
            in_range = self.min_value <= value <= self.max_value
        else:
            in_range = self.min_value < value < self.max_value

        if in_range:
            return self.create_success(
                {"min": self.min_value, "max": self.max_value, "value": value}
            )

        op = "≤" if self.inclusive else "<"
        return self.create_failure(
            "VALUE_OUT_OF_RANGE",
            f"Value {value} is not in range {self.min_value} {op} x {op} {self.max_value}",
            context.path,
            suggestions=[f"Provide value between {self.min_value} and {self.max_value}"],
            context={"min": self.min_value, "max": self.max_value, "inclusive": self.inclusive},
            value=value,
        )


# =============================================================================
# PATTERN
# =============================================================================

class PatternRule(SyncRule):
    """String containing a match for `pattern` (re.search)."""

    def __init__(
        self,
        name: str,
        pattern: Union[str, Pattern[str]],
        pattern_name: str,
        *,
        priority: int = 0,
        cacheable: bool = True,
        dependencies: Optional[Sequence[str]] = None,
    ):
        super().__init__(
            name,
            f"Validate string matches {pattern_name} pattern",
            priority=priority,
            cacheable=cacheable,
            dependencies=dependencies,
        )
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.pattern_name = pattern_name

    def applies_to(self, value: Any) -> bool:
        return isinstance(value, str)

    def validate_sync(self, value: Any, context: ValidationContext) -> RuleResult:
        if self.pattern.search(value):
            return self.create_success({"pattern": self.pattern.pattern, "value": value})

        return self.create_failure(
            "PATTERN_MISMATCH",
            f'Value "{value}" does not match {self.pattern_name} pattern',
            context.path,
            suggestions=[f"Ensure value matches the required {self.pattern_name} format"],
            context={"pattern": self.pattern.pattern, "pattern_name": self.pattern_name},
            value=value,
        )


# =============================================================================
# FACTORIES
# =============================================================================

def create_range_rule(
    name: str,
    min_value: float,
    max_value: float,
    **options: Any,
) -> RangeRule:
    return RangeRule(name, min_value, max_value, **options)


def create_pattern_rule(
    name: str,
    pattern: Union[str, Pattern[str]],
    pattern_name: str,
    **options: Any,
) -> PatternRule:
    return PatternRule(name, pattern, pattern_name, **options)


def create_and_rule(
    name: str,
    description: str,
    rules: Sequence[Rule],
    **options: Any,
) -> CompositeRule:
    return CompositeRule(name, description, rules, CompositeOperator.AND, **options)


def create_or_rule(
    name: str,
    description: str,
    rules: Sequence[Rule],
    **options: Any,
) -> CompositeRule:
    return CompositeRule(name, description, rules, CompositeOperator.OR, **options)


def create_conditional_rule(
    name: str,
    description: str,
    condition: Condition,
    rule: Rule,
    **options: Any,
) -> ConditionalRule:
    return ConditionalRule(name, description, condition, rule, **options)


def create_sync_rule(
    name: str,
    validate_fn: SyncRuleFn,
    description: str = "",
    **options: Any,
) -> SyncRule:
    """Wrap `validate_fn(value, context) -> RuleResult | bool`."""
    return SyncRule(name, description, validate_fn, **options)


def create_async_rule(
    name: str,
    validate_fn: AsyncRuleFn,
    description: str = "",
    timeout_ms: float = 5000,
    **options: Any,
) -> AsyncRule:
    """Wrap an async `validate_fn(value, context)` bounded by `timeout_ms`."""
    return AsyncRule(name, description, validate_fn, timeout_ms=timeout_ms, **options)
