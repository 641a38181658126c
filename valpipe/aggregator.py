"""
valpipe Result Aggregator

Combines validator and rule outcomes into the single ValidationResult
returned by a pipeline run.

- Errors and warnings are unioned in execution order (validators first).
- A failed rule contributes its error; WARNING/INFO rule errors are
  reported as warnings.
- is_valid is false iff any collected error is ERROR or CRITICAL.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING
import logging

from .taxonomy import (
    CacheStats,
    RuleResult,
    Severity,
    ValidationError,
    ValidationMetrics,
    ValidationResult,
    create_error,
)

if TYPE_CHECKING:
    from .executor import ExecutionState

logger = logging.getLogger(__name__)


def rule_failure_error(name: str, result: RuleResult) -> ValidationError:
    """The error a failed rule contributes (synthesised when it gave none)."""
    if result.error is not None:
        return result.error
    return create_error(
        "RULE_FAILED",
        f"Rule '{name}' failed without reporting an error",
        context={"rule": name},
    )


def combine_results(
    validator_results: Mapping[str, ValidationResult],
    rule_results: Mapping[str, RuleResult],
    *,
    duration: float = 0.0,
    cache_hits: int = 0,
    cache_misses: int = 0,
    timestamp: Optional[datetime] = None,
) -> ValidationResult:
    """
    Union every finding into one result.

    `validator_results` and `rule_results` are iterated in insertion order,
    which the engine keeps equal to completion order.
    """
    errors: List[ValidationError] = []
    warnings: List[ValidationError] = []
    rules_executed = 0

    for result in validator_results.values():
        errors.extend(result.errors)
        warnings.extend(result.warnings)
        rules_executed += result.metrics.rules_executed

    for name, result in rule_results.items():
        rules_executed += 1
        if result.passed:
            continue
        error = rule_failure_error(name, result)
        if error.severity >= Severity.ERROR:
            errors.append(error)
        else:
            warnings.append(error)

    units = len(validator_results) + len(rule_results)
    from_cache = units > 0 and all(
        r.from_cache is True for r in validator_results.values()
    ) and all(r.cached for r in rule_results.values())

    combined = ValidationResult.from_findings(
        errors=errors,
        warnings=warnings,
        metrics=ValidationMetrics(
            duration=duration,
            rules_executed=rules_executed,
            validators_used=len(validator_results),
            cache_stats=CacheStats(hits=cache_hits, misses=cache_misses),
        ),
    )
    combined.from_cache = from_cache
    if timestamp is not None:
        combined.timestamp = timestamp
    return combined


# =============================================================================
# RUN SUMMARY
# =============================================================================

@dataclass
class RunSummary:
    """Per-unit breakdown of one execution, for logs and diagnostics."""
    execution_id: str
    is_valid: bool

    passed_validators: List[str] = field(default_factory=list)
    failed_validators: List[str] = field(default_factory=list)
    passed_rules: List[str] = field(default_factory=list)
    failed_rules: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cached: List[str] = field(default_factory=list)

    halted: bool = False
    blocking_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "is_valid": self.is_valid,
            "passed_validators": list(self.passed_validators),
            "failed_validators": list(self.failed_validators),
            "passed_rules": list(self.passed_rules),
            "failed_rules": list(self.failed_rules),
            "skipped": list(self.skipped),
            "cached": list(self.cached),
            "halted": self.halted,
            "blocking_count": len(self.blocking_messages),
        }


class ResultAggregator:
    """Turns an ExecutionState into results and summaries."""

    def combine(self, state: "ExecutionState", duration: float) -> ValidationResult:
        return combine_results(
            state.validator_results,
            state.rule_results,
            duration=duration,
            cache_hits=state.cache_stats.hits,
            cache_misses=state.cache_stats.misses,
        )

    def summarize(self, state: "ExecutionState") -> RunSummary:
        summary = RunSummary(
            execution_id=state.execution_id,
            is_valid=True,
            skipped=sorted(state.skipped),
            halted=state.halted,
        )

        for name, result in state.validator_results.items():
            if result.from_cache:
                summary.cached.append(name)
            if result.is_valid:
                summary.passed_validators.append(name)
                continue
            summary.failed_validators.append(name)
            summary.is_valid = False
            for error in result.blocking_errors:
                summary.blocking_messages.append(f"[{name}] {error.message}")

        for name, result in state.rule_results.items():
            if result.cached:
                summary.cached.append(name)
            if result.passed:
                summary.passed_rules.append(name)
                continue
            summary.failed_rules.append(name)
            error = rule_failure_error(name, result)
            if error.is_blocking:
                summary.is_valid = False
                summary.blocking_messages.append(f"[{name}] {error.message}")

        return summary
