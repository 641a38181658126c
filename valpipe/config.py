"""
valpipe/config.py - Pipeline configuration

Provides ValidationPipelineConfig (pydantic-validated), loading from
environment variables, preset profiles, and logging setup.

All durations are milliseconds.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union
import json
import logging
import os
import sys

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "VALPIPE_"


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes", "on")


# =============================================================================
# PIPELINE CONFIG
# =============================================================================

class ParallelConfig(BaseModel):
    """Cooperative concurrency limits."""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_concurrency: int = Field(default=4, ge=1)


class MonitoringConfig(BaseModel):
    """Sampled performance monitoring."""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    duration_threshold_ms: float = Field(default=1000.0, gt=0)
    window_size: int = Field(default=1000, ge=1)


class ValidationPipelineConfig(BaseModel):
    """Root configuration for a ValidationPipeline."""
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    timeout: float = Field(default=5000.0, gt=0)
    enable_caching: bool = True
    cache_ttl: float = Field(default=300_000.0, ge=0)
    max_cache_size: int = Field(default=1000, ge=0)
    continue_on_error: bool = True
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ValidationPipelineConfig":
        """Load from environment variables, falling back to defaults."""
        return coerce_config({
            "timeout": float(os.getenv(f"{prefix}TIMEOUT_MS", "5000")),
            "enable_caching": _env_bool(f"{prefix}ENABLE_CACHING", True),
            "cache_ttl": float(os.getenv(f"{prefix}CACHE_TTL_MS", "300000")),
            "max_cache_size": int(os.getenv(f"{prefix}MAX_CACHE_SIZE", "1000")),
            "continue_on_error": _env_bool(f"{prefix}CONTINUE_ON_ERROR", True),
            "parallel": {
                "enabled": _env_bool(f"{prefix}PARALLEL", True),
                "max_concurrency": int(os.getenv(f"{prefix}MAX_CONCURRENCY", "4")),
            },
            "monitoring": {
                "enabled": _env_bool(f"{prefix}MONITORING", True),
                "sample_rate": float(os.getenv(f"{prefix}SAMPLE_RATE", "0.1")),
            },
        })

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


ConfigLike = Union[ValidationPipelineConfig, Mapping[str, Any], None]


def coerce_config(config: ConfigLike = None) -> ValidationPipelineConfig:
    """
    Accept a config model, a partial mapping, or None.

    Raises:
        ConfigurationError: the values fail validation
    """
    if config is None:
        return ValidationPipelineConfig()
    if isinstance(config, ValidationPipelineConfig):
        return config.model_copy(deep=True)
    try:
        return ValidationPipelineConfig.model_validate(dict(config))
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid pipeline configuration: {e.error_count()} error(s)",
            code="VALIDATION_INVALID_CONFIG",
            details={"errors": [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]},
        ) from e


def merge_config(
    base: ValidationPipelineConfig,
    overrides: ConfigLike = None,
) -> ValidationPipelineConfig:
    """Overlay a partial mapping onto `base`; nested sections merge key by key."""
    if overrides is None:
        return base.model_copy(deep=True)
    if isinstance(overrides, ValidationPipelineConfig):
        return overrides.model_copy(deep=True)

    merged = base.model_dump()
    for key, value in overrides.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return coerce_config(merged)


# =============================================================================
# PRESETS
# =============================================================================

def default_config() -> ValidationPipelineConfig:
    """General-purpose profile."""
    return ValidationPipelineConfig(
        timeout=30_000,
        enable_caching=True,
        cache_ttl=300_000,
        max_cache_size=1000,
        continue_on_error=True,
        parallel=ParallelConfig(enabled=True, max_concurrency=10),
        monitoring=MonitoringConfig(enabled=True, sample_rate=1.0),
    )


def fast_config() -> ValidationPipelineConfig:
    """Short timeouts, large cache, stop at the first blocking failure."""
    return ValidationPipelineConfig(
        timeout=10_000,
        enable_caching=True,
        cache_ttl=600_000,
        max_cache_size=5000,
        continue_on_error=False,
        parallel=ParallelConfig(enabled=True, max_concurrency=20),
        monitoring=MonitoringConfig(enabled=True, sample_rate=0.1),
    )


def thorough_config() -> ValidationPipelineConfig:
    """No caching, strictly sequential, everything runs."""
    return ValidationPipelineConfig(
        timeout=120_000,
        enable_caching=False,
        cache_ttl=0,
        max_cache_size=0,
        continue_on_error=True,
        parallel=ParallelConfig(enabled=False, max_concurrency=1),
        monitoring=MonitoringConfig(enabled=True, sample_rate=1.0),
    )


# =============================================================================
# LOGGING
# =============================================================================

@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "LoggingConfig":
        return cls(
            level=os.getenv(f"{prefix}LOG_LEVEL", "INFO"),
            format=os.getenv(
                f"{prefix}LOG_FORMAT",
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            ),
            log_file=os.getenv(f"{prefix}LOG_FILE"),
            json_logs=_env_bool(f"{prefix}JSON_LOGS", False),
        )

    def apply(self) -> logging.Logger:
        return setup_logging(
            level=self.level,
            log_file=self.log_file,
            json_format=self.json_logs,
            fmt=self.format,
        )


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps({
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
    fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> logging.Logger:
    """
    Configure the `valpipe` logger hierarchy.

    Handlers are attached to the package logger, not the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        json_format: Use JSON format for logs
        fmt: Format string for plain-text logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt)

    package_logger = logging.getLogger("valpipe")
    package_logger.setLevel(log_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        package_logger.addHandler(file_handler)

    return package_logger
