"""
valpipe rules - composable fine-grained checks.
"""

from .base import (
    AsyncRule,
    BaseRule,
    SyncRule,
)
from .composite import (
    CompositeOperator,
    CompositeRule,
    ConditionalRule,
)
from .builtin import (
    PatternRule,
    RangeRule,
    create_and_rule,
    create_async_rule,
    create_conditional_rule,
    create_or_rule,
    create_pattern_rule,
    create_range_rule,
    create_sync_rule,
)

__all__ = [
    "BaseRule",
    "SyncRule",
    "AsyncRule",
    "CompositeOperator",
    "CompositeRule",
    "ConditionalRule",
    "RangeRule",
    "PatternRule",
    "create_range_rule",
    "create_pattern_rule",
    "create_and_rule",
    "create_or_rule",
    "create_conditional_rule",
    "create_sync_rule",
    "create_async_rule",
]
