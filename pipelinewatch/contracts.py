"""Data contracts for observed workflow objects and derived gap records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .constants import CONDITION_SUCCEEDED, STEP_KIND, SUCCEEDED

Outcome = Literal["succeeded", "failed", "unknown"]


class Condition(BaseModel):
    """Status condition as published by the control plane."""

    type: str = CONDITION_SUCCEEDED
    status: Literal["True", "False", "Unknown"] = "Unknown"
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> "Condition":
        return cls(
            type=data.get("type", CONDITION_SUCCEEDED),
            status=data.get("status", "Unknown"),
            reason=data.get("reason") or "",
            message=data.get("message") or "",
            last_transition_time=data.get("lastTransitionTime"),
        )


class StepReference(BaseModel):
    """Child reference listed in a workflow run's status."""

    kind: str = STEP_KIND
    name: str


class ObjectReference(BaseModel):
    """Reference to the pipeline or task definition a run executes."""

    name: str = ""
    params: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_manifest(cls, data: Optional[Dict[str, Any]]) -> Optional["ObjectReference"]:
        if data is None:
            return None
        params = {}
        for param in data.get("params") or []:
            value = param.get("value")
            params[str(param.get("name", ""))] = value if isinstance(value, str) else ""
        return cls(name=data.get("name") or "", params=params)


class ObservedObject(BaseModel):
    """Fields shared by workflow runs and step runs."""

    namespace: str = ""
    name: str
    generate_name: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    resource_version: Optional[str] = None
    creation_time: datetime
    start_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    conditions: List[Condition] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @staticmethod
    def _common_from_manifest(data: Dict[str, Any]) -> Dict[str, Any]:
        metadata = data.get("metadata") or {}
        status = data.get("status") or {}
        return {
            "namespace": metadata.get("namespace") or "",
            "name": metadata.get("name") or "",
            "generate_name": metadata.get("generateName") or "",
            "labels": dict(metadata.get("labels") or {}),
            "resource_version": metadata.get("resourceVersion"),
            "creation_time": metadata.get("creationTimestamp"),
            "start_time": status.get("startTime"),
            "completion_time": status.get("completionTime"),
            "conditions": [
                Condition.from_manifest(c) for c in status.get("conditions") or []
            ],
        }


class WorkflowRun(ObservedObject):
    """One execution of a multi-step pipeline."""

    pipeline_ref: Optional[ObjectReference] = None
    step_references: List[StepReference] = Field(default_factory=list)

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> "WorkflowRun":
        """Build a run from a Kubernetes-style ``PipelineRun`` document."""
        fields = cls._common_from_manifest(data)
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        refs = [
            StepReference(kind=ref.get("kind", STEP_KIND), name=ref["name"])
            for ref in status.get("childReferences") or []
            if ref.get("name")
        ]
        return cls(
            **fields,
            pipeline_ref=ObjectReference.from_manifest(spec.get("pipelineRef")),
            step_references=refs,
        )


class StepRun(ObservedObject):
    """One execution of a single pipeline step."""

    task_ref: Optional[ObjectReference] = None

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> "StepRun":
        """Build a step from a Kubernetes-style ``TaskRun`` document."""
        fields = cls._common_from_manifest(data)
        spec = data.get("spec") or {}
        return cls(**fields, task_ref=ObjectReference.from_manifest(spec.get("taskRef")))


class GapEntry(BaseModel):
    """Idle time between a step's predecessor event and the step's creation."""

    status: Literal["succeeded", "failed"] = SUCCEEDED
    pipeline: str
    completed: str  # upstream identifier: predecessor step or the run itself
    upcoming: str  # downstream identifier: the step that was created
    gap: float  # milliseconds
