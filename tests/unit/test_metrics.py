"""
Unit tests for sampled performance monitoring.
"""

import random

from valpipe import EventDispatcher, MonitoringConfig, PerformanceMonitor, PipelineEventType


class TestPerformanceMonitor:
    """Tests for PerformanceMonitor."""

    def test_full_sampling(self):
        monitor = PerformanceMonitor(MonitoringConfig(sample_rate=1.0), EventDispatcher())
        assert monitor.record(10.0) is True
        assert monitor.record(30.0) is True
        assert monitor.average_duration == 20.0
        assert monitor.get_stats()["max_duration"] == 30.0

    def test_disabled(self):
        monitor = PerformanceMonitor(MonitoringConfig(enabled=False), EventDispatcher())
        assert monitor.record(10.0) is False
        assert monitor.sample_count == 0

    def test_zero_rate_never_samples(self):
        monitor = PerformanceMonitor(
            MonitoringConfig(sample_rate=0.0), EventDispatcher(), rng=random.Random(1),
        )
        assert not any(monitor.record(1.0) for _ in range(50))

    def test_partial_sampling_is_seeded(self):
        config = MonitoringConfig(sample_rate=0.5)
        first = PerformanceMonitor(config, EventDispatcher(), rng=random.Random(7))
        second = PerformanceMonitor(config, EventDispatcher(), rng=random.Random(7))
        assert [first.record(1.0) for _ in range(20)] == [second.record(1.0) for _ in range(20)]

    def test_window_bounded(self):
        monitor = PerformanceMonitor(
            MonitoringConfig(sample_rate=1.0, window_size=3), EventDispatcher(),
        )
        for duration in [100.0, 1.0, 2.0, 3.0]:
            monitor.record(duration)
        assert monitor.sample_count == 3
        assert monitor.average_duration == 2.0

    def test_threshold_event(self):
        dispatcher = EventDispatcher()
        events = []
        dispatcher.subscribe(PipelineEventType.PERFORMANCE_THRESHOLD, events.append)
        monitor = PerformanceMonitor(
            MonitoringConfig(sample_rate=1.0, duration_threshold_ms=50), dispatcher,
        )

        monitor.record(40.0)
        assert events == []
        monitor.record(80.0)

        assert len(events) == 1
        assert events[0]["metric"] == "average_duration"
        assert events[0]["value"] == 60.0
        assert events[0]["threshold"] == 50
        assert monitor.get_stats()["threshold_breaches"] == 1

    def test_reset(self):
        monitor = PerformanceMonitor(MonitoringConfig(sample_rate=1.0), EventDispatcher())
        monitor.record(5.0)
        monitor.reset()
        assert monitor.sample_count == 0
        assert monitor.average_duration == 0.0
