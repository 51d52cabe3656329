"""Pure extractors over runs, steps and their status conditions."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping, Optional

from .constants import (
    CLUSTER_TASK_LABEL,
    CONDITION_SUCCEEDED,
    FAILED,
    PIPELINE_TASK_LABEL,
    SUCCEEDED,
    TASK_LABEL,
    TASK_RUN_LABEL,
    THROTTLE_REASONS,
)
from .contracts import Condition, ObservedObject, Outcome, StepRun, WorkflowRun


def succeeded_condition(obj: ObservedObject) -> Optional[Condition]:
    """Return the ``Succeeded`` condition of ``obj`` if present."""
    for condition in obj.conditions:
        if condition.type == CONDITION_SUCCEEDED:
            return condition
    return None


def outcome(obj: ObservedObject) -> Outcome:
    condition = succeeded_condition(obj)
    if condition is None or condition.status == "Unknown":
        return "unknown"
    return SUCCEEDED if condition.status == "True" else FAILED


def is_done(obj: ObservedObject) -> bool:
    """An object is done once its ``Succeeded`` condition is ``True`` or ``False``."""
    return outcome(obj) != "unknown"


def status_label(obj: ObservedObject) -> str:
    """Metric label value for the outcome; anything but failure counts as success."""
    return FAILED if outcome(obj) == FAILED else SUCCEEDED


def pipeline_ref_name(run: WorkflowRun) -> str:
    """Low-cardinality display name for the pipeline a run executes.

    Prefers the referenced pipeline name, then a ``name`` resolver parameter,
    then the run's ``generateName`` and finally the run name itself.
    """
    ref = run.pipeline_ref
    if ref is not None:
        if ref.name:
            return ref.name
        for key, value in ref.params.items():
            if key.strip() == "name":
                return value
        return ""
    if run.generate_name:
        return run.generate_name
    return run.name


def task_ref_name(labels: Mapping[str, str]) -> str:
    for key in (TASK_LABEL, PIPELINE_TASK_LABEL, CLUSTER_TASK_LABEL, TASK_RUN_LABEL):
        value = labels.get(key, "")
        if value:
            return value
    return ""


def step_display_name(step: StepRun) -> str:
    return task_ref_name(step.labels) or step.name


def is_step_throttled(step: StepRun) -> bool:
    """A pending step waiting on quota or node capacity is throttled."""
    condition = succeeded_condition(step)
    if condition is None or condition.status != "Unknown":
        return False
    return condition.reason in THROTTLE_REASONS


def duration_ms(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Whole milliseconds between two instants, 0 when either is unset."""
    if start is None or end is None:
        return 0.0
    return float(int((end - start) / timedelta(milliseconds=1)))
