"""Simple example showing overhead analysis of a finished PipelineRun."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from prometheus_client import generate_latest

from pipelinewatch import MetricsRegistry, OverheadReconciler, get_store
from pipelinewatch.contracts import Condition, StepReference, StepRun, WorkflowRun

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds):
    return T0 + timedelta(seconds=seconds)


def done():
    return [Condition(status="True", reason="Succeeded")]


async def main():
    """Seed an in-memory store, reconcile one run and print the exported series."""
    logging.basicConfig(level=logging.INFO)

    store = get_store("inmemory")
    await store.connect()

    store.add_run(
        WorkflowRun(
            namespace="tenant-a",
            name="build-7x2kq",
            creation_time=T0,
            start_time=at(5),
            completion_time=at(365),
            conditions=done(),
            step_references=[StepReference(name=n) for n in ("clone", "build", "push")],
        )
    )
    for name, created, completed in (("clone", 0, 8), ("build", 10, 20), ("push", 40, 365)):
        store.add_step(
            StepRun(
                namespace="tenant-a",
                name=name,
                creation_time=at(created),
                start_time=at(created + 1),
                completion_time=at(completed),
                conditions=done(),
            )
        )

    metrics = MetricsRegistry()
    reconciler = OverheadReconciler(store, metrics)
    result = await reconciler.reconcile("tenant-a", "build-7x2kq")

    for entry in result.overhead.gaps:
        print(f"{entry.completed} -> {entry.upcoming}: {entry.gap:.0f}ms")
    print(f"execution overhead: {result.overhead.execution_ratio:.4f}")
    print(f"scheduling overhead: {result.overhead.scheduling_ratio:.4f}")
    print(generate_latest(metrics.registry).decode())

    await store.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
