"""
valpipe Error Taxonomy

Exceptions raised by the pipeline, and their conversion into structured
ValidationError findings.

- ConfigurationError: structural misconfiguration, raised at registration time
- CyclicDependencyError: dependency insertion that would create a cycle
- ValidationTimeoutError: an operation exceeded its allotted time
- ExecutionError: an exception escaped a rule/validator body
- CompositeFailure: aggregated child failures under AND/OR composition

Only ConfigurationError (and its subclasses) ever reaches a pipeline caller;
the others are converted to failed results at the boundary where they occur.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

from .taxonomy import Severity, ValidationError


class PipelineError(Exception):
    """Base class for all valpipe exceptions."""

    default_code = "PIPELINE_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def to_validation_error(
        self,
        path: Optional[Sequence[str]] = None,
        code: Optional[str] = None,
        severity: Severity = Severity.ERROR,
        suggestions: Optional[Sequence[str]] = None,
        value: Any = None,
    ) -> ValidationError:
        """Express this exception as a structured finding."""
        return ValidationError(
            code=code or self.code,
            message=self.message,
            path=list(path or []),
            severity=severity,
            suggestions=list(suggestions or []),
            context=dict(self.details),
            value=value,
        )


class ConfigurationError(PipelineError):
    """Duplicate names, cyclic or missing dependencies, invalid objects."""
    default_code = "VALIDATION_CONFIGURATION_ERROR"


class CyclicDependencyError(ConfigurationError):
    """Raised when a dependency insertion would create a cycle."""
    default_code = "VALIDATION_CIRCULAR_DEPENDENCY"

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(
            f"Cyclic dependency detected: {' -> '.join(cycle)}",
            details={"cycle": list(cycle)},
        )


class ValidationTimeoutError(PipelineError, TimeoutError):
    """An operation did not finish within its timeout."""
    default_code = "VALIDATION_TIMEOUT"

    def __init__(self, message: str, timeout_ms: float, code: Optional[str] = None):
        self.timeout_ms = timeout_ms
        super().__init__(message, code=code, details={"timeout": timeout_ms})


class ExecutionError(PipelineError):
    """An uncaught exception inside a rule or validator body."""
    default_code = "EXECUTION_ERROR"

    def __init__(
        self,
        message: str,
        source: str = "",
        original: Optional[BaseException] = None,
        code: Optional[str] = None,
    ):
        self.source = source
        self.original = original
        details: Dict[str, Any] = {}
        if source:
            details["source"] = source
        if original is not None:
            details["error"] = str(original)
            details["error_type"] = type(original).__name__
        super().__init__(message, code=code, details=details)

    @classmethod
    def from_exception(
        cls,
        kind: str,
        name: str,
        exc: BaseException,
        code: Optional[str] = None,
    ) -> "ExecutionError":
        """Wrap `exc` raised by the rule/validator `name`."""
        return cls(
            f"{kind} '{name}' failed: {exc}",
            source=name,
            original=exc,
            code=code,
        )


class CompositeFailure(PipelineError):
    """Every child of an OR composite failed (or an AND child failed)."""
    default_code = "COMPOSITE_RULE_FAILURE"

    def __init__(self, operator: str, failures: Sequence[ValidationError]):
        self.operator = operator
        self.failures = list(failures)
        if operator == "OR":
            message = "All rules in OR composite failed"
        else:
            message = f"A rule in {operator} composite failed"
        super().__init__(
            message,
            details={"operator": operator, "errors": len(self.failures)},
        )
