"""
Base validator classes.

- BaseValidator: name, config defaults, schema and result helpers
- FunctionValidator: wraps plain (sync or async) functions
- AsyncValidator: caps how many validate() calls run at once
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import asyncio
import inspect
import logging

from ..errors import ConfigurationError
from ..taxonomy import (
    Severity,
    ValidationContext,
    ValidationError,
    ValidationResult,
    ValidationSchema,
    ValidatorConfig,
    create_error,
    create_failure_result,
    create_success_result,
)

logger = logging.getLogger(__name__)

ConfigInput = Union[ValidatorConfig, Mapping[str, Any], None]


def coerce_validator_config(config: ConfigInput = None) -> ValidatorConfig:
    """Fill a partial mapping in over the validator defaults."""
    if config is None:
        return ValidatorConfig()
    if isinstance(config, ValidatorConfig):
        return ValidatorConfig.from_dict(config.to_dict())
    return ValidatorConfig.from_dict(dict(config))


class BaseValidator:
    """
    Base class for validator implementations.

    Override validate() and can_validate(); override create_schema() to
    publish richer metadata.
    """

    def __init__(
        self,
        name: str,
        config: ConfigInput = None,
        dependencies: Optional[Iterable[str]] = None,
    ):
        self.name = name
        self.config = coerce_validator_config(config)
        self.dependencies: List[str] = list(dependencies or [])
        self.validate_config()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult:
        raise NotImplementedError("Subclasses must implement validate()")

    def can_validate(self, value: Any) -> bool:
        raise NotImplementedError("Subclasses must implement can_validate()")

    def create_schema(self) -> ValidationSchema:
        return ValidationSchema(
            name=self.name,
            description=f"Schema for {self.name} validator",
        )

    def get_schema(self) -> ValidationSchema:
        return self.create_schema()

    def validate_config(self) -> None:
        """
        Raises:
            ConfigurationError: timeout is set but not positive
        """
        timeout = self.config.timeout
        if timeout is not None and timeout <= 0:
            raise ConfigurationError(
                "Validator timeout must be positive",
                code="VALIDATION_INVALID_VALIDATOR_CONFIG",
                details={"validator": self.name, "timeout": timeout},
            )

    def create_error(
        self,
        code: str,
        message: str,
        path: Optional[Sequence[str]] = None,
        severity: Severity = Severity.ERROR,
        suggestions: Optional[Sequence[str]] = None,
        context: Optional[Dict[str, Any]] = None,
        value: Any = None,
    ) -> ValidationError:
        return create_error(code, message, path, severity, suggestions, context, value)

    def create_success_result(
        self,
        warnings: Optional[Sequence[ValidationError]] = None,
    ) -> ValidationResult:
        return create_success_result(warnings)

    def create_failure_result(
        self,
        errors: Sequence[ValidationError],
        warnings: Optional[Sequence[ValidationError]] = None,
    ) -> ValidationResult:
        return create_failure_result(errors, warnings)


ValidateFn = Callable[[Any, ValidationContext], Union[ValidationResult, bool, Awaitable[Any]]]
CanValidateFn = Callable[[Any], bool]


class FunctionValidator(BaseValidator):
    """Validator built from a validate function and an optional type guard."""

    def __init__(
        self,
        name: str,
        validate_fn: ValidateFn,
        can_validate_fn: Optional[CanValidateFn] = None,
        config: ConfigInput = None,
        dependencies: Optional[Iterable[str]] = None,
    ):
        super().__init__(name, config, dependencies)
        self._validate_fn = validate_fn
        self._can_validate_fn = can_validate_fn

    def can_validate(self, value: Any) -> bool:
        if self._can_validate_fn is None:
            return True
        return bool(self._can_validate_fn(value))

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult:
        outcome = self._validate_fn(value, context)
        if inspect.isawaitable(outcome):
            outcome = await outcome

        if isinstance(outcome, ValidationResult):
            return outcome
        if isinstance(outcome, bool):
            if outcome:
                return self.create_success_result()
            return self.create_failure_result([self.create_error(
                "VALIDATION_FAILED",
                f"Validator '{self.name}' rejected the value",
                context.path,
                context={"validator": self.name},
            )])
        raise TypeError(
            f"Validator '{self.name}' returned {type(outcome).__name__}, "
            f"expected ValidationResult or bool"
        )


class AsyncValidator(BaseValidator):
    """
    Validator whose concurrent validate() calls are capped at
    `concurrency_limit`; further calls wait for a free slot.
    """

    def __init__(
        self,
        name: str,
        config: ConfigInput = None,
        dependencies: Optional[Iterable[str]] = None,
        concurrency_limit: int = 5,
    ):
        super().__init__(name, config, dependencies)
        if concurrency_limit < 1:
            raise ConfigurationError(
                "Validator concurrency limit must be at least 1",
                code="VALIDATION_INVALID_VALIDATOR_CONFIG",
                details={"validator": self.name, "concurrency_limit": concurrency_limit},
            )
        self.concurrency_limit = concurrency_limit
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._active = 0

    @property
    def active_tasks(self) -> int:
        return self._active

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.concurrency_limit)
        async with self._semaphore:
            self._active += 1
            try:
                return await self.perform_async_validation(value, context)
            finally:
                self._active -= 1

    async def perform_async_validation(
        self,
        value: Any,
        context: ValidationContext,
    ) -> ValidationResult:
        raise NotImplementedError("Subclasses must implement perform_async_validation()")
