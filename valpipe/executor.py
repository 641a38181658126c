"""
valpipe Execution Engine

Runs the applicable validators and rules for one value:

1. Select validators (explicit names, or every enabled validator whose
   can_validate() holds) and rules (every rule whose applies_to() holds).
2. Order them by dependency, then priority, then registration.
3. Consult the result cache for cacheable units.
4. Execute under a per-unit timeout, bounded by a shared semaphore.
5. Combine everything into one ValidationResult.

Exceptions raised by validator/rule bodies and predicates are converted to
failed results at the unit boundary and never reach the caller.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, TYPE_CHECKING,
)
import asyncio
import logging
import uuid

from .aggregator import ResultAggregator, rule_failure_error
from .cache import CacheKey, ResultCache, create_cache_key
from .clock import Clock, execute_with_timeout
from .config import ValidationPipelineConfig
from .errors import ExecutionError, ValidationTimeoutError
from .events import EventDispatcher, PipelineEventType
from .taxonomy import (
    CacheStats,
    Rule,
    RuleResult,
    ValidationContext,
    ValidationResult,
    Validator,
    create_error,
    create_failure_result,
)
from .topology import DependencyGraph

if TYPE_CHECKING:
    from .registry import NamedRegistry

logger = logging.getLogger(__name__)

# Extra time granted to rules that enforce their own timeout
RULE_TIMEOUT_GRACE_MS = 50.0


# =============================================================================
# EXECUTION STATE
# =============================================================================

@dataclass
class ExecutionState:
    """Tracks one run; discarded once the result is built."""
    execution_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    pending: Set[str] = field(default_factory=set)
    running: Set[str] = field(default_factory=set)
    completed: Set[str] = field(default_factory=set)
    failed: Set[str] = field(default_factory=set)
    skipped: Set[str] = field(default_factory=set)

    # Insertion order == completion order
    validator_results: Dict[str, ValidationResult] = field(default_factory=dict)
    rule_results: Dict[str, RuleResult] = field(default_factory=dict)

    cache_stats: CacheStats = field(default_factory=CacheStats)

    # Set when continue_on_error is off and a blocking outcome was seen
    halted: bool = False
    halted_by: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return len(self.pending) == 0 and len(self.running) == 0

    @property
    def has_failures(self) -> bool:
        return len(self.failed) > 0

    def mark_running(self, name: str) -> None:
        self.pending.discard(name)
        self.running.add(name)

    def mark_done(self, name: str, ok: bool) -> None:
        self.running.discard(name)
        (self.completed if ok else self.failed).add(name)

    def skip_remaining(self) -> None:
        self.skipped.update(self.pending)
        self.pending.clear()

    def get_summary(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "pending": len(self.pending),
            "running": len(self.running),
            "completed": len(self.completed),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "is_complete": self.is_complete,
            "has_failures": self.has_failures,
            "halted": self.halted,
        }


# =============================================================================
# EXECUTION ENGINE
# =============================================================================

class ExecutionEngine:
    """
    Orchestrates validators and rules for a ValidationPipeline.

    The engine owns no registrations; it reads the pipeline's registries,
    graphs, cache and config on every run.
    """

    def __init__(
        self,
        config: ValidationPipelineConfig,
        validators: "NamedRegistry[Validator]",
        rules: "NamedRegistry[Rule]",
        validator_graph: DependencyGraph,
        rule_graph: DependencyGraph,
        cache: ResultCache,
        dispatcher: EventDispatcher,
        clock: Optional[Clock] = None,
    ):
        self._config = config
        self._validators = validators
        self._rules = rules
        self._validator_graph = validator_graph
        self._rule_graph = rule_graph
        self._cache = cache
        self._dispatcher = dispatcher
        self._clock = clock or Clock()
        self._aggregator = ResultAggregator()

    @property
    def config(self) -> ValidationPipelineConfig:
        return self._config

    def _elapsed(self, started: float) -> float:
        return self._clock.now_ms() - started

    def new_semaphore(self) -> asyncio.Semaphore:
        return asyncio.Semaphore(self._config.parallel.max_concurrency)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def run(
        self,
        value: Any,
        validator_names: Optional[Sequence[str]] = None,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> ValidationResult:
        """Validate one value. Raises only for internal engine failures."""
        semaphore = semaphore or self.new_semaphore()
        started = self._clock.now_ms()

        validators = self.select_validators(value, validator_names)
        rules = self.select_rules(value)

        state = ExecutionState(
            execution_id=str(uuid.uuid4())[:8],
            started_at=self._clock.utcnow(),
        )
        state.pending = {v.name for v in validators} | {r.name for r in rules}

        self._dispatcher.emit(
            PipelineEventType.VALIDATION_STARTED,
            target=value,
            validators=[v.name for v in validators],
        )

        try:
            if not validators and not rules and _is_empty(value):
                result = self._no_validators_result(value)
            else:
                context = ValidationContext.create(value)
                await self._run_validators(value, validators, context, state, semaphore)
                if not state.halted:
                    await self._run_rules(value, rules, context, state, semaphore)
                state.skip_remaining()
                result = self._aggregator.combine(state, self._elapsed(started))
        except Exception as e:
            logger.error(f"Validation run {state.execution_id} failed: {e}")
            self._dispatcher.emit(PipelineEventType.VALIDATION_ERROR, error=e)
            raise ExecutionError.from_exception(
                "Validation run", state.execution_id, e, code="PIPELINE_EXECUTION_ERROR",
            ) from e

        state.completed_at = self._clock.utcnow()
        result.metrics.duration = self._elapsed(started)

        if state.halted:
            logger.info(
                f"Run {state.execution_id} halted by '{state.halted_by}', "
                f"skipped {len(state.skipped)} unit(s)"
            )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Run summary: {self._aggregator.summarize(state).to_dict()}")

        self._dispatcher.emit(PipelineEventType.VALIDATION_COMPLETED, result=result)
        return result

    async def run_batch(
        self,
        values: Iterable[Any],
        validator_names: Optional[Sequence[str]] = None,
    ) -> List[ValidationResult]:
        """Validate many values under one concurrency budget; input order kept."""
        values = list(values)
        semaphore = self.new_semaphore()
        if not self._config.parallel.enabled:
            return [await self.run(v, validator_names, semaphore) for v in values]
        return list(await asyncio.gather(
            *(self.run(v, validator_names, semaphore) for v in values)
        ))

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_validators(
        self,
        value: Any,
        validator_names: Optional[Sequence[str]] = None,
    ) -> List[Validator]:
        """
        Applicable validators in execution order.

        Explicit names bypass `config.enabled` but still require
        can_validate(); unknown names are skipped.
        """
        if validator_names is not None:
            candidates: List[Validator] = []
            for name in dict.fromkeys(validator_names):
                validator = self._validators.get(name)
                if validator is None:
                    logger.warning(f"Unknown validator requested: {name}")
                    continue
                candidates.append(validator)
        else:
            candidates = [v for v in self._validators if v.config.enabled]

        applicable = {
            v.name: v for v in candidates
            if _check_predicate("Validator", v.name, v.can_validate, value)
        }
        order = self._validator_graph.topological_order()
        return [applicable[name] for name in order if name in applicable]

    def select_rules(self, value: Any) -> List[Rule]:
        applicable = {
            r.name: r for r in self._rules
            if _check_predicate("Rule", r.name, r.applies_to, value)
        }
        order = self._rule_graph.topological_order()
        return [applicable[name] for name in order if name in applicable]

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def _run_validators(
        self,
        value: Any,
        validators: List[Validator],
        context: ValidationContext,
        state: ExecutionState,
        semaphore: asyncio.Semaphore,
    ) -> None:
        by_name = {v.name: v for v in validators}
        await self._run_units(
            self._validator_graph,
            list(by_name),
            lambda name: self._run_validator(by_name[name], value, context, state),
            state,
            semaphore,
        )

    async def _run_rules(
        self,
        value: Any,
        rules: List[Rule],
        context: ValidationContext,
        state: ExecutionState,
        semaphore: asyncio.Semaphore,
    ) -> None:
        by_name = {r.name: r for r in rules}
        await self._run_units(
            self._rule_graph,
            list(by_name),
            lambda name: self._run_rule(by_name[name], value, context, state),
            state,
            semaphore,
        )

    async def _run_units(
        self,
        graph: DependencyGraph,
        names: List[str],
        run_one: Callable[[str], Awaitable[bool]],
        state: ExecutionState,
        semaphore: asyncio.Semaphore,
    ) -> None:
        """
        Run `names` level by level (parallel) or one by one (sequential).

        `run_one` returns False for a blocking outcome. With
        continue_on_error off, scheduling stops after the level (or unit)
        that produced one.
        """
        if not names:
            return

        if self._config.parallel.enabled:
            batches = graph.execution_plan(names)
        else:
            batches = [[name] for name in names]

        for depth, batch in enumerate(batches):
            if len(batch) > 1:
                logger.debug(f"Level {depth}: running {batch} concurrently")

            async def guarded(name: str) -> bool:
                async with semaphore:
                    state.mark_running(name)
                    ok = await run_one(name)
                    state.mark_done(name, ok)
                    return ok

            outcomes = await asyncio.gather(*(guarded(name) for name in batch))

            if not self._config.continue_on_error and not all(outcomes):
                state.halted = True
                state.halted_by = next(n for n, ok in zip(batch, outcomes) if not ok)
                return

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    def _lookup(self, key: Optional[CacheKey], state: ExecutionState) -> Any:
        if key is None:
            return None
        cached = self._cache.get(key)
        state.cache_stats.record(cached is not None)
        event = PipelineEventType.CACHE_HIT if cached is not None else PipelineEventType.CACHE_MISS
        self._dispatcher.emit(event, key=key.as_string())
        return cached

    def _validator_cache_key(self, validator: Validator, value: Any) -> Optional[CacheKey]:
        if not (self._config.enable_caching and validator.config.cacheable):
            return None
        try:
            schema_version = validator.get_schema().version
        except Exception as e:
            logger.warning(f"Validator '{validator.name}' get_schema() raised, not caching: {e}")
            return None
        return create_cache_key(
            validator.name, value, validator.config.to_dict(), schema_version,
        )

    async def _run_validator(
        self,
        validator: Validator,
        value: Any,
        context: ValidationContext,
        state: ExecutionState,
    ) -> bool:
        """Execute (or replay) one validator; returns False on a blocking outcome."""
        name = validator.name
        key = self._validator_cache_key(validator, value)
        cached = self._lookup(key, state)
        if cached is not None:
            result = replace(cached, from_cache=True)
            state.validator_results[name] = result
            return result.is_valid

        timeout = validator.config.timeout or self._config.timeout
        scoped = context.with_config(validator.config)
        started = self._clock.now_ms()
        storable = True

        try:
            result = await execute_with_timeout(
                lambda: validator.validate(value, scoped),
                timeout,
                f"Validator '{name}' timed out after {timeout}ms",
                code="VALIDATOR_TIMEOUT",
            )
            if not isinstance(result, ValidationResult):
                raise TypeError(
                    f"validate() returned {type(result).__name__}, expected ValidationResult"
                )
        except ValidationTimeoutError as e:
            logger.warning(str(e))
            storable = False
            result = create_failure_result([e.to_validation_error(path=context.path)])
        except Exception as e:
            error = ExecutionError.from_exception(
                "Validator", name, e, code="VALIDATOR_EXECUTION_ERROR",
            )
            logger.warning(error.message)
            storable = False
            result = create_failure_result([error.to_validation_error(path=context.path)])

        result = replace(result, from_cache=False)
        if not result.metrics.duration:
            result.metrics.duration = self._elapsed(started)

        state.validator_results[name] = result
        self._dispatcher.emit(
            PipelineEventType.VALIDATOR_EXECUTED, validator=name, result=result,
        )

        if key is not None and storable:
            self._cache.set(key, result, ttl_ms=self._config.cache_ttl)
        return result.is_valid

    async def _run_rule(
        self,
        rule: Rule,
        value: Any,
        context: ValidationContext,
        state: ExecutionState,
    ) -> bool:
        """Execute (or replay) one rule; returns False on a blocking outcome."""
        name = rule.name
        key = None
        if self._config.enable_caching and rule.cacheable:
            key = create_cache_key(
                name,
                value,
                {"description": getattr(rule, "description", ""), "priority": rule.priority},
                "rule",
            )

        cached = self._lookup(key, state)
        if cached is not None:
            result = replace(cached, cached=True)
            state.rule_results[name] = result
            return _rule_ok(name, result)

        timeout = _rule_timeout(rule, self._config.timeout)
        started = self._clock.now_ms()
        storable = True

        try:
            result = await execute_with_timeout(
                lambda: rule.execute(value, context),
                timeout,
                f"Rule '{name}' timed out after {timeout}ms",
                code="RULE_TIMEOUT",
            )
            if not isinstance(result, RuleResult):
                raise TypeError(
                    f"execute() returned {type(result).__name__}, expected RuleResult"
                )
        except ValidationTimeoutError as e:
            logger.warning(str(e))
            storable = False
            result = RuleResult(passed=False, error=e.to_validation_error(path=context.path))
        except Exception as e:
            error = ExecutionError.from_exception("Rule", name, e, code="RULE_EXECUTION_ERROR")
            logger.warning(error.message)
            storable = False
            result = RuleResult(passed=False, error=error.to_validation_error(path=context.path))

        result = replace(
            result,
            cached=False,
            duration=result.duration or self._elapsed(started),
        )

        state.rule_results[name] = result
        context.metrics.rules_executed += 1
        self._dispatcher.emit(PipelineEventType.RULE_EXECUTED, rule=name, result=result)

        if key is not None and storable:
            self._cache.set(key, result, ttl_ms=self._config.cache_ttl)
        return _rule_ok(name, result)

    # -------------------------------------------------------------------------
    # Edge cases
    # -------------------------------------------------------------------------

    def _no_validators_result(self, value: Any) -> ValidationResult:
        logger.info("No validators or rules apply to an empty value")
        return create_failure_result(
            [create_error(
                "NO_VALIDATORS_APPLICABLE",
                "No validators are applicable to this value",
                suggestions=["Provide a non-empty value", "Register a validator for this type"],
                value=value,
            )],
            validators_used=0,
        )


def _rule_timeout(rule: Rule, pipeline_timeout: float) -> float:
    """
    Outer bound for one rule.

    A rule carrying its own `timeout_ms` no longer than the pipeline timeout
    gets a grace period, so its own timer fires first and reports its own
    error. Longer rule timeouts are cut short by the pipeline timeout.
    """
    own = getattr(rule, "timeout_ms", None)
    if own and own > 0 and own <= pipeline_timeout:
        return pipeline_timeout + RULE_TIMEOUT_GRACE_MS
    return pipeline_timeout


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _rule_ok(name: str, result: RuleResult) -> bool:
    return result.passed or not rule_failure_error(name, result).is_blocking


def _check_predicate(kind: str, name: str, predicate: Callable[[Any], Any], value: Any) -> bool:
    """Evaluate can_validate/applies_to; a raising predicate means not applicable."""
    try:
        return bool(predicate(value))
    except Exception as e:
        logger.warning(f"{kind} '{name}' applicability check raised, skipping: {e}")
        return False
