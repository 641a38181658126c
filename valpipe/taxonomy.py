"""
valpipe Taxonomy

Value objects threaded through every validation call:

- Severity ordering (INFO < WARNING < ERROR < CRITICAL)
- ValidationError / RuleResult / ValidationResult
- ValidationMetrics and CacheStats accumulators
- ValidatorConfig and ValidationSchema metadata
- ValidationContext (created per validate() call, discarded afterwards)
- Rule / Validator capability protocols
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable,
)
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# SEVERITY
# =============================================================================

SEVERITY_ORDER = {
    "info": 0,
    "warning": 1,
    "error": 2,
    "critical": 3,
}


class Severity(str, Enum):
    """Ordinal severity of a validation finding."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER[self.value]

    @property
    def is_blocking(self) -> bool:
        """ERROR and CRITICAL make a result invalid."""
        return self.rank >= SEVERITY_ORDER["error"]

    def __lt__(self, other):
        if isinstance(other, Severity):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Severity):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Severity):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, Severity):
            return self.rank >= other.rank
        return NotImplemented


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# VALIDATION ERROR
# =============================================================================

@dataclass
class ValidationError:
    """A single structured finding (error or warning)."""
    code: str
    message: str
    path: List[str] = field(default_factory=list)
    severity: Severity = Severity.ERROR
    suggestions: List[str] = field(default_factory=list)
    context: Optional[Dict[str, Any]] = None
    value: Any = None

    @property
    def is_blocking(self) -> bool:
        return self.severity.is_blocking

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "message": self.message,
            "path": list(self.path),
            "severity": self.severity.value,
            "suggestions": list(self.suggestions),
        }
        if self.context is not None:
            data["context"] = self.context
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationError":
        return cls(
            code=data["code"],
            message=data["message"],
            path=list(data.get("path", [])),
            severity=Severity(data.get("severity", "error")),
            suggestions=list(data.get("suggestions", [])),
            context=data.get("context"),
            value=data.get("value"),
        )


# =============================================================================
# METRICS
# =============================================================================

@dataclass
class CacheStats:
    """Cache hit/miss counters for a single run."""
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record(self, hit: bool) -> None:
        if hit:
            self.hits += 1
        else:
            self.misses += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }


@dataclass
class ValidationMetrics:
    """Accumulator mutated in place while a validation runs."""
    duration: float = 0.0           # milliseconds
    rules_executed: int = 0
    validators_used: int = 0
    cache_stats: CacheStats = field(default_factory=CacheStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration": self.duration,
            "rules_executed": self.rules_executed,
            "validators_used": self.validators_used,
            "cache_stats": self.cache_stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationMetrics":
        stats = data.get("cache_stats", {})
        return cls(
            duration=data.get("duration", 0.0),
            rules_executed=data.get("rules_executed", 0),
            validators_used=data.get("validators_used", 0),
            cache_stats=CacheStats(
                hits=stats.get("hits", 0),
                misses=stats.get("misses", 0),
            ),
        )


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class RuleResult:
    """Outcome of one rule execution."""
    passed: bool
    error: Optional[ValidationError] = None
    duration: float = 0.0           # milliseconds
    cached: bool = False
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "error": self.error.to_dict() if self.error else None,
            "duration": self.duration,
            "cached": self.cached,
            "metadata": self.metadata,
        }


@dataclass
class ValidationResult:
    """Complete outcome of a validator, or of a whole pipeline run."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationError] = field(default_factory=list)
    metrics: ValidationMetrics = field(default_factory=ValidationMetrics)
    from_cache: Optional[bool] = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def blocking_errors(self) -> List[ValidationError]:
        return [e for e in self.errors if e.is_blocking]

    @classmethod
    def from_findings(
        cls,
        errors: Iterable[ValidationError] = (),
        warnings: Iterable[ValidationError] = (),
        metrics: Optional[ValidationMetrics] = None,
    ) -> "ValidationResult":
        """Build a result whose validity is derived from error severities."""
        errors = list(errors)
        return cls(
            is_valid=not any(e.is_blocking for e in errors),
            errors=errors,
            warnings=list(warnings),
            metrics=metrics or ValidationMetrics(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "metrics": self.metrics.to_dict(),
            "from_cache": self.from_cache,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationResult":
        result = cls(
            is_valid=data["is_valid"],
            errors=[ValidationError.from_dict(e) for e in data.get("errors", [])],
            warnings=[ValidationError.from_dict(w) for w in data.get("warnings", [])],
            metrics=ValidationMetrics.from_dict(data.get("metrics", {})),
            from_cache=data.get("from_cache"),
        )
        if data.get("timestamp"):
            result.timestamp = datetime.fromisoformat(data["timestamp"])
        return result


# =============================================================================
# VALIDATOR CONFIG & SCHEMA
# =============================================================================

@dataclass
class ValidatorConfig:
    """Per-validator options; timeout is in milliseconds (None = pipeline default)."""
    enabled: bool = True
    priority: int = 0
    timeout: Optional[float] = 5000
    cacheable: bool = True
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "priority": self.priority,
            "timeout": self.timeout,
            "cacheable": self.cacheable,
            "options": dict(self.options),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidatorConfig":
        return cls(
            enabled=data.get("enabled", True),
            priority=data.get("priority", 0),
            timeout=data.get("timeout", 5000),
            cacheable=data.get("cacheable", True),
            options=dict(data.get("options") or {}),
        )


@dataclass
class ValidationSchema:
    """Descriptive metadata a validator publishes about itself."""
    name: str
    version: str = "1.0.0"
    description: str = ""
    types: List[str] = field(default_factory=lambda: ["any"])
    required_validators: List[str] = field(default_factory=list)
    optional_validators: List[str] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "types": list(self.types),
            "required_validators": list(self.required_validators),
            "optional_validators": list(self.optional_validators),
            "properties": dict(self.properties),
        }


# =============================================================================
# VALIDATION CONTEXT
# =============================================================================

@dataclass
class ValidationContext:
    """
    Per-call state shared by every validator and rule in one validate().

    `root` and `parent` are plain references, never copies. `shared` is a
    scratch map for cross-rule communication; concurrent rules in one level
    interleave at await points, so writes are last-write-wins.
    """
    path: List[str] = field(default_factory=list)
    root: Any = None
    parent: Any = None
    config: ValidatorConfig = field(default_factory=ValidatorConfig)
    shared: Dict[str, Any] = field(default_factory=dict)
    metrics: ValidationMetrics = field(default_factory=ValidationMetrics)

    @classmethod
    def create(cls, root: Any, path: Optional[Sequence[str]] = None) -> "ValidationContext":
        """Create a root context for a top-level value."""
        return cls(path=list(path or []), root=root)

    def child(self, segment: str, parent: Any = None) -> "ValidationContext":
        """Derive a context one path segment deeper, sharing root/shared/metrics."""
        return ValidationContext(
            path=self.path + [segment],
            root=self.root,
            parent=parent,
            config=self.config,
            shared=self.shared,
            metrics=self.metrics,
        )

    def with_config(self, config: ValidatorConfig) -> "ValidationContext":
        """Same position in the value, different validator options snapshot."""
        return ValidationContext(
            path=list(self.path),
            root=self.root,
            parent=self.parent,
            config=config,
            shared=self.shared,
            metrics=self.metrics,
        )


# =============================================================================
# CAPABILITIES
# =============================================================================

@runtime_checkable
class Rule(Protocol):
    """Fine-grained check with dependency and priority metadata."""
    name: str
    description: str
    dependencies: Any
    priority: int
    cacheable: bool

    async def execute(self, value: Any, context: ValidationContext) -> RuleResult: ...

    def applies_to(self, value: Any) -> bool: ...


@runtime_checkable
class Validator(Protocol):
    """Coarse-grained check over a whole value."""
    name: str
    config: ValidatorConfig
    dependencies: Any

    async def validate(self, value: Any, context: ValidationContext) -> ValidationResult: ...

    def can_validate(self, value: Any) -> bool: ...

    def get_schema(self) -> ValidationSchema: ...


def is_rule(obj: Any) -> bool:
    """Structural check for the Rule capability."""
    return (
        isinstance(getattr(obj, "name", None), str)
        and bool(obj.name)
        and callable(getattr(obj, "execute", None))
        and callable(getattr(obj, "applies_to", None))
        and isinstance(getattr(obj, "priority", None), int)
        and hasattr(obj, "dependencies")
        and hasattr(obj, "cacheable")
    )


def is_validator(obj: Any) -> bool:
    """Structural check for the Validator capability."""
    return (
        isinstance(getattr(obj, "name", None), str)
        and bool(obj.name)
        and isinstance(getattr(obj, "config", None), ValidatorConfig)
        and callable(getattr(obj, "validate", None))
        and callable(getattr(obj, "can_validate", None))
        and callable(getattr(obj, "get_schema", None))
        and hasattr(obj, "dependencies")
    )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def create_error(
    code: str,
    message: str,
    path: Optional[Sequence[str]] = None,
    severity: Severity = Severity.ERROR,
    suggestions: Optional[Sequence[str]] = None,
    context: Optional[Dict[str, Any]] = None,
    value: Any = None,
) -> ValidationError:
    """Create a validation error."""
    return ValidationError(
        code=code,
        message=message,
        path=list(path or []),
        severity=severity,
        suggestions=list(suggestions or []),
        context=context,
        value=value,
    )


def create_success_result(
    warnings: Optional[Sequence[ValidationError]] = None,
    validators_used: int = 1,
) -> ValidationResult:
    """Create a passing validation result."""
    return ValidationResult(
        is_valid=True,
        warnings=list(warnings or []),
        metrics=ValidationMetrics(validators_used=validators_used),
    )


def create_failure_result(
    errors: Sequence[ValidationError],
    warnings: Optional[Sequence[ValidationError]] = None,
    validators_used: int = 1,
) -> ValidationResult:
    """Create a result from findings; validity follows error severities."""
    return ValidationResult.from_findings(
        errors=errors,
        warnings=warnings or [],
        metrics=ValidationMetrics(validators_used=validators_used),
    )
