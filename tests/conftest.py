"""Shared builders for runs, steps, stores and metrics."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import pytest

from pipelinewatch.contracts import (
    Condition,
    ObjectReference,
    StepReference,
    StepRun,
    WorkflowRun,
)
from pipelinewatch.metrics import MetricsRegistry
from pipelinewatch.store import InMemoryObjectStore

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: Optional[float]) -> Optional[datetime]:
    """Instant ``seconds`` after T0, ``None`` passes through."""
    if seconds is None:
        return None
    return T0 + timedelta(seconds=seconds)


def _conditions(status: Optional[str], reason: str, transition: Optional[float]):
    if status is None:
        return []
    return [Condition(status=status, reason=reason, last_transition_time=at(transition))]


def build_run(
    name: str = "build-run",
    namespace: str = "tenant-a",
    created: float = 0,
    started: Optional[float] = None,
    completed: Optional[float] = None,
    status: Optional[str] = None,
    reason: str = "",
    transition: Optional[float] = None,
    steps: Iterable[str] = (),
    labels: Optional[dict] = None,
    pipeline_ref: Optional[str] = None,
) -> WorkflowRun:
    return WorkflowRun(
        namespace=namespace,
        name=name,
        labels=labels or {},
        creation_time=at(created),
        start_time=at(started),
        completion_time=at(completed),
        conditions=_conditions(status, reason, transition),
        step_references=[StepReference(name=s) for s in steps],
        pipeline_ref=ObjectReference(name=pipeline_ref) if pipeline_ref else None,
    )


def build_step(
    name: str,
    namespace: str = "tenant-a",
    created: float = 0,
    started: Optional[float] = None,
    completed: Optional[float] = None,
    status: Optional[str] = None,
    reason: str = "",
    transition: Optional[float] = None,
    task: Optional[str] = None,
    task_ref: Optional[str] = None,
) -> StepRun:
    return StepRun(
        namespace=namespace,
        name=name,
        labels={"tekton.dev/pipelineTask": task} if task else {},
        creation_time=at(created),
        start_time=at(started),
        completion_time=at(completed),
        conditions=_conditions(status, reason, transition),
        task_ref=ObjectReference(name=task_ref) if task_ref else None,
    )


@pytest.fixture
def make_run():
    return build_run


@pytest.fixture
def make_step():
    return build_step


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def metrics():
    return MetricsRegistry()


def sample_count(metrics: MetricsRegistry, name: str, labels: dict) -> float:
    return metrics.registry.get_sample_value(f"{name}_count", labels) or 0.0


def sample_sum(metrics: MetricsRegistry, name: str, labels: dict) -> float:
    return metrics.registry.get_sample_value(f"{name}_sum", labels) or 0.0
