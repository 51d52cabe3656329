"""Base object store interface for reading observed control plane state."""

from __future__ import annotations

import abc
from typing import Dict, List, Optional

from ..contracts import StepRun, WorkflowRun


class ObjectStore(metaclass=abc.ABCMeta):
    """Abstract access to workflow runs and step runs."""

    async def connect(self) -> None:
        """Open connection to the API (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the API (no-op by default)."""
        pass

    @abc.abstractmethod
    async def get_workflow_run(self, namespace: str, name: str) -> WorkflowRun:
        """Fetch a run, raising ``NotFoundError`` when it does not exist."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_step_run(self, namespace: str, name: str) -> StepRun:
        """Fetch a step, raising ``NotFoundError`` when it does not exist."""
        raise NotImplementedError

    @abc.abstractmethod
    async def patch_labels(self, run: WorkflowRun, labels: Dict[str, str]) -> WorkflowRun:
        """Merge ``labels`` into ``run`` as last observed.

        The write is guarded by ``run.resource_version``; a concurrent
        modification raises ``ConflictError``.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def list_workflow_runs(self, namespace: Optional[str] = None) -> List[WorkflowRun]:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_step_runs(self, namespace: Optional[str] = None) -> List[StepRun]:
        raise NotImplementedError
