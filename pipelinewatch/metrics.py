"""Prometheus sinks for overhead, wait time and liveness signals.

Every series lives on an explicit ``CollectorRegistry`` owned by a
``MetricsRegistry`` instance, so several registries (one per test, say) can
coexist in a process.
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, Histogram

from .constants import (
    EXECUTION_OVERHEAD_METRIC,
    KIND_LABEL,
    NS_LABEL,
    REFERENCE_WAIT_METRIC,
    RUN_KICKOFF_STUCK_METRIC,
    RUN_SCHEDULED_METRIC,
    SCHEDULE_OVERHEAD_METRIC,
    STATUS_LABEL,
    STEP_START_STUCK_METRIC,
)


def exponential_buckets(start: float, factor: float, count: int) -> list[float]:
    return [start * factor**i for i in range(count)]


class MetricsRegistry:
    """Owns the exported series and the registry they are collected from."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        labels = [NS_LABEL, STATUS_LABEL]
        self.execution_overhead = Histogram(
            EXECUTION_OVERHEAD_METRIC,
            "Proportion of time elapsed between the completion of a TaskRun and the "
            "creation of the next TaskRun within a PipelineRun to the total duration "
            "of the PipelineRun",
            labels,
            registry=self.registry,
        )
        self.schedule_overhead = Histogram(
            SCHEDULE_OVERHEAD_METRIC,
            "Proportion of time elapsed waiting for the pipeline controller to "
            "receive create events compared to the total duration of the PipelineRun",
            labels,
            registry=self.registry,
        )
        self.reference_wait = Histogram(
            REFERENCE_WAIT_METRIC,
            "Duration in milliseconds for a resolution request for a pipeline or task "
            "reference to be recognized as complete by the controller",
            [NS_LABEL, KIND_LABEL],
            buckets=exponential_buckets(100, 5, 6),
            registry=self.registry,
        )
        self.run_scheduled = Histogram(
            RUN_SCHEDULED_METRIC,
            "Duration in seconds for a PipelineRun to be 'scheduled', meaning it has "
            "been received by the controller",
            labels,
            buckets=exponential_buckets(0.1, 5, 6),
            registry=self.registry,
        )
        self.run_kickoff_stuck = Gauge(
            RUN_KICKOFF_STUCK_METRIC,
            "PipelineRuns not started across consecutive polls",
            [NS_LABEL],
            registry=self.registry,
        )
        self.step_start_stuck = Gauge(
            STEP_START_STUCK_METRIC,
            "TaskRuns not started across consecutive polls",
            [NS_LABEL],
            registry=self.registry,
        )

    def observe_execution_overhead(self, namespace: str, status: str, ratio: float) -> None:
        self.execution_overhead.labels(namespace=namespace, status=status).observe(ratio)

    def observe_schedule_overhead(self, namespace: str, status: str, ratio: float) -> None:
        self.schedule_overhead.labels(namespace=namespace, status=status).observe(ratio)

    def observe_reference_wait(self, namespace: str, kind: str, millis: float) -> None:
        self.reference_wait.labels(namespace=namespace, kind=kind).observe(millis)

    def observe_run_scheduled(self, namespace: str, status: str, seconds: float) -> None:
        self.run_scheduled.labels(namespace=namespace, status=status).observe(seconds)


class GaugeSink:
    """Per-namespace gauge handle handed to a liveness tracker."""

    def __init__(self, gauge: Gauge) -> None:
        self._gauge = gauge

    def set(self, namespace: str, value: float) -> None:
        self._gauge.labels(namespace=namespace).set(value)

    def zero(self, namespace: str) -> None:
        self._gauge.labels(namespace=namespace).set(0)
