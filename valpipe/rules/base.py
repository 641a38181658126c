"""
Base rule classes.

- BaseRule: metadata plus result helpers
- SyncRule: synchronous check; exceptions become RULE_EXECUTION_ERROR
- AsyncRule: awaitable check under its own timeout; timeouts and
  exceptions become ASYNC_RULE_ERROR

A rule never raises out of execute().
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union
import logging
import time

from ..clock import elapsed_ms, execute_with_timeout
from ..errors import ExecutionError
from ..taxonomy import RuleResult, Severity, ValidationContext, create_error

logger = logging.getLogger(__name__)

RuleOutcome = Union[RuleResult, bool]
SyncRuleFn = Callable[[Any, ValidationContext], RuleOutcome]
AsyncRuleFn = Callable[[Any, ValidationContext], Awaitable[RuleOutcome]]


class BaseRule:
    """
    Base class for rule implementations.

    Subclasses override execute(), and applies_to() when the rule only
    understands some values.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        dependencies: Optional[Iterable[str]] = None,
        priority: int = 0,
        cacheable: bool = True,
    ):
        self.name = name
        self.description = description
        self.dependencies: List[str] = list(dependencies or [])
        self.priority = priority
        self.cacheable = cacheable

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    async def execute(self, value: Any, context: Optional[ValidationContext] = None) -> RuleResult:
        raise NotImplementedError("Subclasses must implement execute()")

    def applies_to(self, value: Any) -> bool:
        return True

    @staticmethod
    def _context(value: Any, context: Optional[ValidationContext]) -> ValidationContext:
        return context if context is not None else ValidationContext.create(value)

    def create_success(self, metadata: Optional[Dict[str, Any]] = None) -> RuleResult:
        return RuleResult(passed=True, metadata=metadata)

    def create_failure(
        self,
        code: str,
        message: str,
        path: Optional[Sequence[str]] = None,
        severity: Severity = Severity.ERROR,
        suggestions: Optional[Sequence[str]] = None,
        context: Optional[Dict[str, Any]] = None,
        value: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> RuleResult:
        return RuleResult(
            passed=False,
            error=create_error(code, message, path, severity, suggestions, context, value),
            metadata=metadata,
        )

    def _coerce(self, outcome: Any, context: ValidationContext) -> RuleResult:
        """Accept a RuleResult or a bool from user-supplied check functions."""
        if isinstance(outcome, RuleResult):
            return outcome
        if isinstance(outcome, bool):
            if outcome:
                return self.create_success()
            return self.create_failure(
                "RULE_FAILED",
                f"Rule '{self.name}' failed",
                context.path,
                context={"rule": self.name},
            )
        raise TypeError(
            f"Rule '{self.name}' returned {type(outcome).__name__}, expected RuleResult or bool"
        )


class SyncRule(BaseRule):
    """Rule backed by a synchronous check (validate_sync or `validate_fn`)."""

    def __init__(
        self,
        name: str,
        description: str = "",
        validate_fn: Optional[SyncRuleFn] = None,
        **options: Any,
    ):
        super().__init__(name, description, **options)
        self._validate_fn = validate_fn

    def validate_sync(self, value: Any, context: ValidationContext) -> RuleOutcome:
        if self._validate_fn is None:
            raise NotImplementedError("Subclasses must implement validate_sync()")
        return self._validate_fn(value, context)

    async def execute(self, value: Any, context: Optional[ValidationContext] = None) -> RuleResult:
        context = self._context(value, context)
        started = time.perf_counter()
        try:
            result = self._coerce(self.validate_sync(value, context), context)
        except Exception as e:
            error = ExecutionError.from_exception("Rule", self.name, e)
            logger.debug(error.message)
            result = self.create_failure(
                "RULE_EXECUTION_ERROR",
                error.message,
                context.path,
                suggestions=["Check rule configuration", "Verify input data"],
                context={"rule": self.name, "error": str(e)},
            )
        result.duration = elapsed_ms(started)
        return result


class AsyncRule(BaseRule):
    """Rule backed by an awaitable check, bounded by `timeout_ms`."""

    def __init__(
        self,
        name: str,
        description: str = "",
        validate_fn: Optional[AsyncRuleFn] = None,
        timeout_ms: float = 5000,
        **options: Any,
    ):
        super().__init__(name, description, **options)
        self._validate_fn = validate_fn
        self.timeout_ms = timeout_ms

    async def validate_async(self, value: Any, context: ValidationContext) -> RuleOutcome:
        if self._validate_fn is None:
            raise NotImplementedError("Subclasses must implement validate_async()")
        return await self._validate_fn(value, context)

    async def execute(self, value: Any, context: Optional[ValidationContext] = None) -> RuleResult:
        context = self._context(value, context)
        started = time.perf_counter()
        try:
            outcome = await execute_with_timeout(
                lambda: self.validate_async(value, context),
                self.timeout_ms,
                f"Async rule '{self.name}' timed out after {self.timeout_ms}ms",
            )
            result = self._coerce(outcome, context)
        except Exception as e:
            logger.debug(f"Async rule '{self.name}' failed: {e}")
            result = self.create_failure(
                "ASYNC_RULE_ERROR",
                f"Async rule '{self.name}' failed: {e}",
                context.path,
                suggestions=["Check network connectivity", "Verify external service availability"],
                context={"rule": self.name, "error": str(e)},
            )
        result.duration = elapsed_ms(started)
        return result
