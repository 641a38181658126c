"""
valpipe Test Configuration and Fixtures

Provides a deterministic clock, pipelines bound to it, and a pair of
chemistry-flavoured rules (formula syntax, molecular weight consistency)
that exercise the Rule contract the way an external collaborator would.
"""

import asyncio
import random
import re
from typing import Any, Callable, Dict, List, Optional

import pytest

from valpipe import (
    FunctionValidator,
    ManualClock,
    RuleResult,
    SyncRule,
    ValidationContext,
    ValidationPipeline,
    ValidationResult,
    create_error,
    create_failure_result,
    create_success_result,
)


ATOMIC_WEIGHTS: Dict[str, float] = {
    "H": 1.008, "C": 12.011, "N": 14.007, "O": 15.999,
    "F": 18.998, "P": 30.974, "S": 32.06, "Cl": 35.45,
    "K": 39.098, "Ca": 40.078, "Fe": 55.845, "Cu": 63.546,
    "Zn": 65.38, "Br": 79.904, "Ag": 107.868, "I": 126.90,
}

FORMULA_PATTERN = re.compile(r"^([A-Z][a-z]?\d*)+$")
ELEMENT_PATTERN = re.compile(r"([A-Z][a-z]?)(\d*)")


class FormulaFormatRule(SyncRule):
    """Compound formula must be element symbols with optional counts."""

    def __init__(self, name: str = "formula_format", **options):
        super().__init__(name, "Chemical formula syntax", **options)

    def applies_to(self, value: Any) -> bool:
        return isinstance(value, dict) and "formula" in value

    def validate_sync(self, value: Any, context: ValidationContext) -> RuleResult:
        formula = value["formula"]
        if isinstance(formula, str) and FORMULA_PATTERN.match(formula):
            return self.create_success({"formula": formula})
        return self.create_failure(
            "INVALID_FORMULA_FORMAT",
            f"Invalid chemical formula format: {formula}",
            context.path + ["formula"],
            suggestions=["Use element symbols followed by optional counts, e.g. H2O"],
            value=formula,
        )


class MolecularWeightRule(SyncRule):
    """Declared molecular weight must match the formula within tolerance."""

    def __init__(self, name: str = "molecular_weight_consistency", **options):
        options.setdefault("dependencies", ["formula_format"])
        super().__init__(name, "Molecular weight consistency", **options)

    def applies_to(self, value: Any) -> bool:
        return isinstance(value, dict) and "formula" in value and "molecular_weight" in value

    def validate_sync(self, value: Any, context: ValidationContext) -> RuleResult:
        expected = sum(
            ATOMIC_WEIGHTS[symbol] * int(count or 1)
            for symbol, count in ELEMENT_PATTERN.findall(value["formula"])
        )
        declared = value["molecular_weight"]
        tolerance = max(0.1, expected * 0.01)
        if abs(declared - expected) <= tolerance:
            return self.create_success({"expected": expected})
        return self.create_failure(
            "MOLECULAR_WEIGHT_MISMATCH",
            f"Molecular weight {declared} does not match calculated {expected:.3f}",
            context.path + ["molecular_weight"],
            suggestions=[f"Expected approximately {expected:.3f}"],
            context={"expected": expected, "tolerance": tolerance},
            value=declared,
        )


@pytest.fixture
def manual_clock():
    """Clock that only moves when advanced."""
    return ManualClock()


@pytest.fixture
def pipeline(manual_clock):
    """Pipeline with default config on a manual clock."""
    return ValidationPipeline(clock=manual_clock, rng=random.Random(0))


@pytest.fixture
def formula_rule():
    return FormulaFormatRule()


@pytest.fixture
def weight_rule():
    return MolecularWeightRule()


@pytest.fixture
def make_rule():
    """
    Factory for synchronous rules.

    make_rule("a", passed=False, deps=["b"], log=log) records the rule's
    name into `log` each time it runs.
    """
    def _make(
        name: str,
        passed: bool = True,
        deps: Optional[List[str]] = None,
        priority: int = 0,
        log: Optional[List[str]] = None,
        severity=None,
        cacheable: bool = True,
    ) -> SyncRule:
        def check(value, context):
            if log is not None:
                log.append(name)
            if passed:
                return RuleResult(passed=True)
            kwargs = {"severity": severity} if severity is not None else {}
            return RuleResult(
                passed=False,
                error=create_error(f"{name.upper()}_FAILED", f"{name} failed", **kwargs),
            )

        return SyncRule(
            name,
            f"{name} rule",
            check,
            dependencies=deps,
            priority=priority,
            cacheable=cacheable,
        )

    return _make


@pytest.fixture
def make_validator():
    """
    Factory for counting validators.

    The returned validator exposes `.calls`, incremented on every
    validate(); `delay` seconds are awaited before answering.
    """
    def _make(
        name: str,
        valid: bool = True,
        delay: float = 0.0,
        applies: Callable[[Any], bool] = lambda value: True,
        log: Optional[List[str]] = None,
        **config,
    ) -> FunctionValidator:
        async def check(value, context) -> ValidationResult:
            validator.calls += 1
            if log is not None:
                log.append(f"{name}:start")
            if delay:
                await asyncio.sleep(delay)
            if log is not None:
                log.append(f"{name}:end")
            if valid:
                return create_success_result()
            return create_failure_result([create_error(f"{name.upper()}_INVALID", f"{name} rejected")])

        deps = config.pop("dependencies", None)
        validator = FunctionValidator(name, check, applies, config=config or None, dependencies=deps)
        validator.calls = 0
        return validator

    return _make
