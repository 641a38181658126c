"""
valpipe validators - coarse-grained checks over whole values.
"""

from .base import (
    AsyncValidator,
    BaseValidator,
    FunctionValidator,
    coerce_validator_config,
)
from .composite import (
    CompositeValidator,
    RuleSetValidator,
)
from .builder import (
    ValidatorBuilder,
    create_composite_validator,
    create_function_validator,
    create_validator,
)

__all__ = [
    "BaseValidator",
    "FunctionValidator",
    "AsyncValidator",
    "CompositeValidator",
    "RuleSetValidator",
    "ValidatorBuilder",
    "coerce_validator_config",
    "create_validator",
    "create_composite_validator",
    "create_function_validator",
]
