"""
valpipe ValidationPipeline

Public façade: owns the validator and rule registries, their dependency
graphs, the result cache, the clock and the event dispatcher, and exposes
validate()/validate_batch().

Each pipeline is self-contained; two pipelines never share registrations,
cache entries or listeners.

Usage:
    pipeline = create_validation_pipeline({"timeout": 2000})
    pipeline.add_rule(create_range_rule("mass", 0, 100))
    result = await pipeline.validate(42)
"""

from __future__ import annotations
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Sequence
import logging
import random

from .cache import ResultCache
from .clock import Clock
from .config import (
    ConfigLike,
    ValidationPipelineConfig,
    coerce_config,
    default_config,
    fast_config,
    merge_config,
    thorough_config,
)
from .errors import ConfigurationError, CyclicDependencyError
from .events import EventDispatcher, EventHandler, EventTypeLike, PipelineEventType
from .executor import ExecutionEngine
from .metrics import PerformanceMonitor
from .registry import NamedRegistry
from .taxonomy import Rule, ValidationResult, Validator, is_rule, is_validator
from .topology import DependencyGraph

logger = logging.getLogger(__name__)


def _dependency_names(obj: Any) -> List[str]:
    deps = getattr(obj, "dependencies", None) or ()
    if isinstance(deps, str):
        return [deps]
    return list(dict.fromkeys(deps))


class ValidationPipeline:
    """Registries plus the validate()/validate_batch() entry points."""

    def __init__(
        self,
        config: ConfigLike = None,
        *,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None,
        rng: Optional[random.Random] = None,
    ):
        self._config = coerce_config(config)
        self._clock = clock or Clock()
        self._dispatcher = dispatcher or EventDispatcher()

        self._validators: NamedRegistry[Validator] = NamedRegistry("validator")
        self._rules: NamedRegistry[Rule] = NamedRegistry("rule")
        self._validator_graph = DependencyGraph()
        self._rule_graph = DependencyGraph()

        self._cache: ResultCache[Any] = ResultCache(
            max_size=self._config.max_cache_size,
            ttl_ms=self._config.cache_ttl,
            clock=self._clock,
        )
        self._monitor = PerformanceMonitor(self._config.monitoring, self._dispatcher, rng)
        self._durations: Deque[float] = deque(maxlen=self._config.monitoring.window_size)

        self._engine = ExecutionEngine(
            config=self._config,
            validators=self._validators,
            rules=self._rules,
            validator_graph=self._validator_graph,
            rule_graph=self._rule_graph,
            cache=self._cache,
            dispatcher=self._dispatcher,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    def add_validator(self, validator: Validator) -> None:
        """
        Register a validator.

        Raises:
            ConfigurationError: not a validator, duplicate name, or a
                dependency that is not registered
            CyclicDependencyError: the dependencies would close a cycle
        """
        if not is_validator(validator):
            raise ConfigurationError(
                f"Object does not implement the Validator interface: {validator!r}",
                code="VALIDATION_INVALID_VALIDATOR",
            )
        name = validator.name
        self._validators.check_available(name)

        deps = _dependency_names(validator)
        self._check_dependencies(name, deps, self._validators, set())
        self._validator_graph.add(name, deps, priority=validator.config.priority)
        self._validators.register(name, validator)

        logger.info(f"Registered validator: {name}")
        self._dispatcher.emit(PipelineEventType.VALIDATOR_REGISTERED, name=name)

    def remove_validator(self, name: str) -> bool:
        if self._validators.unregister(name) is None:
            return False
        self._validator_graph.remove(name)
        self._cache.invalidate(name)
        logger.info(f"Removed validator: {name}")
        self._dispatcher.emit(PipelineEventType.VALIDATOR_UNREGISTERED, name=name)
        return True

    def get_validator(self, name: str) -> Optional[Validator]:
        return self._validators.get(name)

    def get_validators(self) -> List[Validator]:
        return self._validators.values()

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def add_rule(self, rule: Rule) -> None:
        """
        Register a rule. Its dependencies must already be registered.

        Raises:
            ConfigurationError: not a rule, duplicate name, or missing dependency
            CyclicDependencyError: the dependencies would close a cycle
        """
        self.add_rules([rule])

    def add_rules(self, rules: Sequence[Rule]) -> None:
        """
        Register several rules atomically.

        Dependencies may point at rules already registered or at other
        members of the batch. If any rule is rejected, none are added.
        """
        rules = list(rules)
        for rule in rules:
            if not is_rule(rule):
                raise ConfigurationError(
                    f"Object does not implement the Rule interface: {rule!r}",
                    code="VALIDATION_INVALID_RULE",
                )

        batch_names = [rule.name for rule in rules]
        seen = set()
        for name in batch_names:
            self._rules.check_available(name)
            if name in seen:
                raise ConfigurationError(
                    f"Rule '{name}' appears twice in one batch",
                    code="VALIDATION_DUPLICATE_RULE",
                    details={"rule": name},
                )
            seen.add(name)

        entries = []
        for rule in rules:
            deps = _dependency_names(rule)
            self._check_dependencies(rule.name, deps, self._rules, seen)
            entries.append((rule.name, deps, rule.priority))

        self._rule_graph.add_many(entries)
        for rule in rules:
            self._rules.register(rule.name, rule)
            logger.info(f"Registered rule: {rule.name}")
            self._dispatcher.emit(PipelineEventType.RULE_REGISTERED, name=rule.name)

    def remove_rule(self, name: str) -> bool:
        if self._rules.unregister(name) is None:
            return False
        self._rule_graph.remove(name)
        self._cache.invalidate(name)
        logger.info(f"Removed rule: {name}")
        self._dispatcher.emit(PipelineEventType.RULE_UNREGISTERED, name=name)
        return True

    def get_rule(self, name: str) -> Optional[Rule]:
        return self._rules.get(name)

    def get_rules(self) -> List[Rule]:
        return self._rules.values()

    def _check_dependencies(
        self,
        name: str,
        deps: Iterable[str],
        registry: NamedRegistry,
        batch: set,
    ) -> None:
        deps = list(deps)
        if name in deps:
            raise CyclicDependencyError([name, name])
        missing = [d for d in deps if d not in registry and d not in batch]
        if missing:
            raise ConfigurationError(
                f"{registry.kind.capitalize()} '{name}' depends on unregistered: {missing}",
                code="VALIDATION_MISSING_DEPENDENCY",
                details={registry.kind: name, "missing": missing},
            )

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def validate(
        self,
        value: Any,
        validator_names: Optional[Sequence[str]] = None,
    ) -> ValidationResult:
        """
        Validate one value.

        Domain failures are reported in the result (is_valid=False), never
        raised.
        """
        result = await self._engine.run(value, validator_names)
        self._record(result)
        return result

    async def validate_batch(
        self,
        values: Iterable[Any],
        validator_names: Optional[Sequence[str]] = None,
    ) -> List[ValidationResult]:
        """Validate each value under one shared concurrency budget."""
        results = await self._engine.run_batch(values, validator_names)
        for result in results:
            self._record(result)
        return results

    def _record(self, result: ValidationResult) -> None:
        self._durations.append(result.metrics.duration)
        self._monitor.record(result.metrics.duration)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        avg = sum(self._durations) / len(self._durations) if self._durations else 0.0
        return {
            "validators": len(self._validators),
            "rules": len(self._rules),
            "cache_size": self._cache.size(),
            "cache_hit_rate": self._cache.hit_rate,
            "avg_duration": avg,
            "cache": self._cache.get_stats(),
            "performance": self._monitor.get_stats(),
        }

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Validation cache cleared")

    def get_config(self) -> ValidationPipelineConfig:
        """Deep copy; mutating it does not affect the pipeline."""
        return self._config.model_copy(deep=True)

    def get_execution_order(self) -> Dict[str, List[List[str]]]:
        """Current dependency levels for validators and rules."""
        return {
            "validators": self._validator_graph.levels(),
            "rules": self._rule_graph.levels(),
        }

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def clock(self) -> Clock:
        return self._clock

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, event_type: EventTypeLike, listener: EventHandler) -> bool:
        return self._dispatcher.subscribe(event_type, listener)

    def off(self, event_type: EventTypeLike, listener: EventHandler) -> bool:
        return self._dispatcher.unsubscribe(event_type, listener)

    def on_any(self, listener: EventHandler) -> bool:
        return self._dispatcher.subscribe_all(listener)


# =============================================================================
# FACTORIES
# =============================================================================

def create_validation_pipeline(config: ConfigLike = None, **kwargs: Any) -> ValidationPipeline:
    """Pipeline on the general-purpose profile, with `config` overrides."""
    return ValidationPipeline(merge_config(default_config(), config), **kwargs)


def create_fast_validation_pipeline(config: ConfigLike = None, **kwargs: Any) -> ValidationPipeline:
    return ValidationPipeline(merge_config(fast_config(), config), **kwargs)


def create_thorough_validation_pipeline(
    config: ConfigLike = None,
    **kwargs: Any,
) -> ValidationPipeline:
    return ValidationPipeline(merge_config(thorough_config(), config), **kwargs)
