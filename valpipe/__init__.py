"""
valpipe - Validation Pipeline

Runs composable, dependency-ordered validators and rules over arbitrary
values, with result caching, timeouts, bounded concurrency and structured
error/warning aggregation.

Provides:
- ValidationPipeline: registries, validate() and validate_batch()
- DependencyGraph: cycle rejection and topological levels
- ResultCache: TTL/LRU cache keyed by structural value hashes
- Rule composition: Range, Pattern, AND/OR, Conditional, Sync/Async
- Validator composition: Function, Composite, Async, builder
"""

from .taxonomy import (
    Severity,
    ValidationError,
    RuleResult,
    ValidationResult,
    ValidationMetrics,
    CacheStats,
    ValidatorConfig,
    ValidationSchema,
    ValidationContext,
    Rule,
    Validator,
    is_rule,
    is_validator,
    create_error,
    create_success_result,
    create_failure_result,
)
from .errors import (
    PipelineError,
    ConfigurationError,
    CyclicDependencyError,
    ValidationTimeoutError,
    ExecutionError,
    CompositeFailure,
)
from .clock import (
    Clock,
    ManualClock,
    execute_with_timeout,
)
from .topology import (
    DependencyGraph,
    DependencyNode,
)
from .cache import (
    CacheKey,
    CacheEntry,
    ResultCache,
    create_cache_key,
    stable_hash,
)
from .events import (
    EventDispatcher,
    PipelineEvent,
    PipelineEventType,
)
from .config import (
    ValidationPipelineConfig,
    ParallelConfig,
    MonitoringConfig,
    LoggingConfig,
    default_config,
    fast_config,
    thorough_config,
    setup_logging,
)
from .executor import (
    ExecutionEngine,
    ExecutionState,
)
from .aggregator import (
    ResultAggregator,
    RunSummary,
    combine_results,
)
from .metrics import PerformanceMonitor
from .pipeline import (
    ValidationPipeline,
    create_validation_pipeline,
    create_fast_validation_pipeline,
    create_thorough_validation_pipeline,
)
from .rules import (
    BaseRule,
    SyncRule,
    AsyncRule,
    CompositeOperator,
    CompositeRule,
    ConditionalRule,
    RangeRule,
    PatternRule,
    create_range_rule,
    create_pattern_rule,
    create_and_rule,
    create_or_rule,
    create_conditional_rule,
    create_sync_rule,
    create_async_rule,
)
from .validators import (
    BaseValidator,
    FunctionValidator,
    AsyncValidator,
    CompositeValidator,
    RuleSetValidator,
    ValidatorBuilder,
    create_validator,
    create_composite_validator,
    create_function_validator,
)

__version__ = "1.0.0"

__all__ = [
    # Taxonomy
    "Severity",
    "ValidationError",
    "RuleResult",
    "ValidationResult",
    "ValidationMetrics",
    "CacheStats",
    "ValidatorConfig",
    "ValidationSchema",
    "ValidationContext",
    "Rule",
    "Validator",
    "is_rule",
    "is_validator",
    "create_error",
    "create_success_result",
    "create_failure_result",
    # Errors
    "PipelineError",
    "ConfigurationError",
    "CyclicDependencyError",
    "ValidationTimeoutError",
    "ExecutionError",
    "CompositeFailure",
    # Time
    "Clock",
    "ManualClock",
    "execute_with_timeout",
    # Topology
    "DependencyGraph",
    "DependencyNode",
    # Cache
    "CacheKey",
    "CacheEntry",
    "ResultCache",
    "create_cache_key",
    "stable_hash",
    # Events
    "EventDispatcher",
    "PipelineEvent",
    "PipelineEventType",
    # Config
    "ValidationPipelineConfig",
    "ParallelConfig",
    "MonitoringConfig",
    "LoggingConfig",
    "default_config",
    "fast_config",
    "thorough_config",
    "setup_logging",
    # Execution
    "ExecutionEngine",
    "ExecutionState",
    "ResultAggregator",
    "RunSummary",
    "combine_results",
    "PerformanceMonitor",
    # Pipeline
    "ValidationPipeline",
    "create_validation_pipeline",
    "create_fast_validation_pipeline",
    "create_thorough_validation_pipeline",
    # Rules
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
    # Validators
    "BaseValidator",
    "FunctionValidator",
    "AsyncValidator",
    "CompositeValidator",
    "RuleSetValidator",
    "ValidatorBuilder",
    "create_validator",
    "create_composite_validator",
    "create_function_validator",
]
