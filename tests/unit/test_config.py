"""
Unit tests for pipeline configuration and logging setup.
"""

import json
import logging

import pytest

from valpipe import (
    ConfigurationError,
    LoggingConfig,
    ValidationPipelineConfig,
    default_config,
    fast_config,
    setup_logging,
    thorough_config,
)
from valpipe.config import JSONFormatter, coerce_config, merge_config


class TestPipelineConfig:
    """Tests for ValidationPipelineConfig."""

    def test_defaults(self):
        config = ValidationPipelineConfig()
        assert config.timeout == 5000
        assert config.enable_caching is True
        assert config.cache_ttl == 300_000
        assert config.max_cache_size == 1000
        assert config.continue_on_error is True
        assert config.parallel.enabled is True
        assert config.parallel.max_concurrency == 4
        assert config.monitoring.sample_rate == 0.1

    def test_presets(self):
        assert fast_config().continue_on_error is False
        assert fast_config().max_cache_size == 5000
        assert thorough_config().enable_caching is False
        assert thorough_config().parallel.enabled is False
        assert default_config().timeout == 30_000
        assert default_config().parallel.max_concurrency == 10

    def test_coerce_mapping(self):
        config = coerce_config({"timeout": 100, "parallel": {"max_concurrency": 2}})
        assert config.timeout == 100
        assert config.parallel.max_concurrency == 2
        assert config.parallel.enabled is True

    def test_coerce_copies_model(self):
        original = ValidationPipelineConfig()
        copied = coerce_config(original)
        copied.parallel.max_concurrency = 9
        assert original.parallel.max_concurrency == 4

    @pytest.mark.parametrize("bad", [
        {"timeout": 0},
        {"max_cache_size": -1},
        {"parallel": {"max_concurrency": 0}},
        {"monitoring": {"sample_rate": 1.5}},
        {"unknown_option": True},
    ])
    def test_invalid_values_rejected(self, bad):
        with pytest.raises(ConfigurationError) as exc_info:
            coerce_config(bad)
        assert exc_info.value.code == "VALIDATION_INVALID_CONFIG"
        assert exc_info.value.details["errors"]

    def test_merge_nested(self):
        merged = merge_config(fast_config(), {"timeout": 50, "parallel": {"max_concurrency": 3}})
        assert merged.timeout == 50
        assert merged.parallel.max_concurrency == 3
        assert merged.parallel.enabled is True
        assert merged.continue_on_error is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VALPIPE_TIMEOUT_MS", "250")
        monkeypatch.setenv("VALPIPE_ENABLE_CACHING", "false")
        monkeypatch.setenv("VALPIPE_MAX_CONCURRENCY", "7")
        monkeypatch.setenv("VALPIPE_SAMPLE_RATE", "1.0")

        config = ValidationPipelineConfig.from_env()
        assert config.timeout == 250
        assert config.enable_caching is False
        assert config.parallel.max_concurrency == 7
        assert config.monitoring.sample_rate == 1.0

    def test_from_env_invalid(self, monkeypatch):
        monkeypatch.setenv("VALPIPE_TIMEOUT_MS", "-5")
        with pytest.raises(ConfigurationError):
            ValidationPipelineConfig.from_env()

    def test_to_dict(self):
        data = ValidationPipelineConfig().to_dict()
        assert data["parallel"] == {"enabled": True, "max_concurrency": 4}


class TestLogging:
    """Tests for setup_logging."""

    def test_setup_logging(self):
        logger = setup_logging(level="DEBUG")
        assert logger.name == "valpipe"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        setup_logging()
        logger = setup_logging(log_file=str(tmp_path / "valpipe.log"))
        assert len(logger.handlers) == 2

    def test_json_formatter(self):
        record = logging.LogRecord("valpipe.cache", logging.INFO, __file__, 1, "hello", None, None)
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "hello"
        assert data["logger"] == "valpipe.cache"
        assert data["level"] == "INFO"

    def test_logging_config_from_env(self, monkeypatch):
        monkeypatch.setenv("VALPIPE_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("VALPIPE_JSON_LOGS", "true")
        config = LoggingConfig.from_env()
        assert config.level == "WARNING"
        assert config.json_logs is True

        logger = config.apply()
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
