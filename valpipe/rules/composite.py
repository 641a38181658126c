"""
Rule composition: AND/OR composites and conditional rules.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
import logging
import time

from ..clock import elapsed_ms
from ..errors import CompositeFailure
from ..taxonomy import Rule, RuleResult, ValidationContext, ValidationError
from .base import BaseRule

logger = logging.getLogger(__name__)

Condition = Callable[[Any, ValidationContext], Any]


class CompositeOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class CompositeRule(BaseRule):
    """
    Combines child rules under AND or OR.

    Applicable children run sequentially. AND passes iff every child
    passes and surfaces the first failure's error; OR passes iff any child
    passes, otherwise reports COMPOSITE_RULE_FAILURE with the failure count.
    """

    def __init__(
        self,
        name: str,
        description: str,
        rules: Sequence[Rule],
        operator: Union[CompositeOperator, str] = CompositeOperator.AND,
        **options: Any,
    ):
        super().__init__(name, description, **options)
        self.rules: List[Rule] = list(rules)
        self.operator = CompositeOperator(operator)

    def applies_to(self, value: Any) -> bool:
        return any(rule.applies_to(value) for rule in self.rules)

    async def execute(self, value: Any, context: Optional[ValidationContext] = None) -> RuleResult:
        context = self._context(value, context)
        started = time.perf_counter()
        results: List[RuleResult] = []
        errors: List[ValidationError] = []

        try:
            for rule in self.rules:
                if not rule.applies_to(value):
                    continue
                result = await rule.execute(value, context)
                results.append(result)
                if not result.passed and result.error is not None:
                    errors.append(result.error)
        except Exception as e:
            logger.debug(f"Composite rule '{self.name}' failed: {e}")
            result = self.create_failure(
                "COMPOSITE_RULE_ERROR",
                f"Composite rule execution failed: {e}",
                context.path,
                suggestions=["Check individual rules", "Verify rule composition"],
                context={"error": str(e)},
            )
            result.duration = elapsed_ms(started)
            return result

        if self.operator is CompositeOperator.AND:
            passed = all(r.passed for r in results)
        else:
            passed = any(r.passed for r in results)

        metadata: Dict[str, Any] = {
            "operator": self.operator.value,
            "rules_executed": len(results),
            "total_duration": sum(r.duration for r in results),
        }

        if passed:
            return RuleResult(passed=True, duration=elapsed_ms(started), metadata=metadata)

        metadata["all_errors"] = errors
        if self.operator is CompositeOperator.AND and errors:
            error = errors[0]
        else:
            error = CompositeFailure(self.operator.value, errors).to_validation_error(
                path=context.path,
                suggestions=["Check individual rule failures"],
            )
        return RuleResult(
            passed=False,
            error=error,
            duration=elapsed_ms(started),
            metadata=metadata,
        )


class ConditionalRule(BaseRule):
    """
    Runs `rule` only when `condition(value, context)` holds.

    Otherwise the result passes with metadata skipped=True and the inner
    rule is never invoked.
    """

    def __init__(
        self,
        name: str,
        description: str,
        condition: Condition,
        rule: Rule,
        **options: Any,
    ):
        super().__init__(name, description, **options)
        self.condition = condition
        self.rule = rule

    def applies_to(self, value: Any) -> bool:
        try:
            return bool(self.rule.applies_to(value))
        except Exception as e:
            logger.debug(f"Conditional rule '{self.name}': inner applies_to raised: {e}")
            return False

    async def execute(self, value: Any, context: Optional[ValidationContext] = None) -> RuleResult:
        context = self._context(value, context)
        started = time.perf_counter()

        try:
            if not self.condition(value, context):
                return RuleResult(
                    passed=True,
                    duration=elapsed_ms(started),
                    metadata={"condition_met": False, "skipped": True},
                )

            result = await self.rule.execute(value, context)
        except Exception as e:
            logger.debug(f"Conditional rule '{self.name}' failed: {e}")
            result = self.create_failure(
                "CONDITIONAL_RULE_ERROR",
                f"Conditional rule execution failed: {e}",
                context.path,
                suggestions=["Check condition logic", "Verify rule implementation"],
                context={"error": str(e)},
            )
            result.duration = elapsed_ms(started)
            return result

        result.metadata = {
            **(result.metadata or {}),
            "condition_met": True,
            "parent_rule": self.name,
        }
        return result
