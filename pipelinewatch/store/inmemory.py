"""In-memory object store for testing and offline analysis."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

from ..contracts import StepRun, WorkflowRun
from .base import ObjectStore
from .errors import ConflictError, NotFoundError


class InMemoryObjectStore(ObjectStore):
    """Keep objects in local memory.

    Objects are copied on the way in and out so callers never share state with
    the store, and every write bumps ``resource_version`` the way an API server
    would.
    """

    def __init__(self) -> None:
        self._runs: Dict[Tuple[str, str], WorkflowRun] = {}
        self._steps: Dict[Tuple[str, str], StepRun] = {}
        self._version = 0
        self._lock = asyncio.Lock()
        self.patch_calls = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add_run(self, run: WorkflowRun) -> WorkflowRun:
        stored = run.model_copy(deep=True, update={"resource_version": self._next_version()})
        self._runs[(run.namespace, run.name)] = stored
        return stored.model_copy(deep=True)

    def add_step(self, step: StepRun) -> StepRun:
        stored = step.model_copy(deep=True, update={"resource_version": self._next_version()})
        self._steps[(step.namespace, step.name)] = stored
        return stored.model_copy(deep=True)

    def delete_step(self, namespace: str, name: str) -> None:
        self._steps.pop((namespace, name), None)

    async def get_workflow_run(self, namespace: str, name: str) -> WorkflowRun:
        run = self._runs.get((namespace, name))
        if run is None:
            raise NotFoundError(f"pipelinerun {namespace}/{name} not found")
        return run.model_copy(deep=True)

    async def get_step_run(self, namespace: str, name: str) -> StepRun:
        step = self._steps.get((namespace, name))
        if step is None:
            raise NotFoundError(f"taskrun {namespace}/{name} not found")
        return step.model_copy(deep=True)

    async def patch_labels(self, run: WorkflowRun, labels: Dict[str, str]) -> WorkflowRun:
        async with self._lock:
            self.patch_calls += 1
            current = self._runs.get((run.namespace, run.name))
            if current is None:
                raise NotFoundError(f"pipelinerun {run.key} not found")
            if run.resource_version is not None and run.resource_version != current.resource_version:
                raise ConflictError(
                    f"pipelinerun {run.key} modified: have {run.resource_version}, "
                    f"current {current.resource_version}"
                )
            merged = {**current.labels, **labels}
            current.labels = merged
            current.resource_version = self._next_version()
            return current.model_copy(deep=True)

    async def list_workflow_runs(self, namespace: Optional[str] = None) -> List[WorkflowRun]:
        return [
            r.model_copy(deep=True)
            for (ns, _), r in self._runs.items()
            if namespace is None or ns == namespace
        ]

    async def list_step_runs(self, namespace: Optional[str] = None) -> List[StepRun]:
        return [
            s.model_copy(deep=True)
            for (ns, _), s in self._steps.items()
            if namespace is None or ns == namespace
        ]
