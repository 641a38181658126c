"""
Sampled performance monitoring for pipeline runs.

A fraction (`sample_rate`) of run durations is kept in a bounded window.
When the window average exceeds `duration_threshold_ms`, a
performance:threshold event is emitted.
"""

from __future__ import annotations
from collections import deque
from typing import Any, Deque, Dict, Optional
import logging
import random

from .config import MonitoringConfig
from .events import EventDispatcher, PipelineEventType

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Tracks recent validation durations (ms)."""

    def __init__(
        self,
        config: MonitoringConfig,
        dispatcher: EventDispatcher,
        rng: Optional[random.Random] = None,
    ):
        self._config = config
        self._dispatcher = dispatcher
        self._rng = rng or random.Random()
        self._durations: Deque[float] = deque(maxlen=config.window_size)
        self._threshold_breaches = 0

    def should_sample(self) -> bool:
        if not self._config.enabled:
            return False
        if self._config.sample_rate >= 1.0:
            return True
        return self._rng.random() < self._config.sample_rate

    def record(self, duration_ms: float) -> bool:
        """Record a run duration if sampled. Returns True when it was kept."""
        if not self.should_sample():
            return False

        self._durations.append(duration_ms)
        average = self.average_duration
        threshold = self._config.duration_threshold_ms
        if average > threshold:
            self._threshold_breaches += 1
            logger.warning(
                f"Average validation duration {average:.1f}ms exceeds {threshold:.0f}ms"
            )
            self._dispatcher.emit(
                PipelineEventType.PERFORMANCE_THRESHOLD,
                metric="average_duration",
                value=average,
                threshold=threshold,
            )
        return True

    @property
    def average_duration(self) -> float:
        if not self._durations:
            return 0.0
        return sum(self._durations) / len(self._durations)

    @property
    def sample_count(self) -> int:
        return len(self._durations)

    def reset(self) -> None:
        self._durations.clear()
        self._threshold_breaches = 0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "samples": len(self._durations),
            "average_duration": self.average_duration,
            "max_duration": max(self._durations, default=0.0),
            "threshold_ms": self._config.duration_threshold_ms,
            "threshold_breaches": self._threshold_breaches,
        }
