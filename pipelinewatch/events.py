"""Update-event predicates deciding which object changes need work.

Create, delete and generic events never trigger anything; all the signals here
come from comparing the old and new versions of an updated object.
"""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from .conditions import duration_ms, is_done, status_label, succeeded_condition
from .constants import (
    REASON_RESOLVING_PIPELINE_REF,
    REASON_RESOLVING_TASK_REF,
    RUN_KIND,
    STEP_KIND,
    THROTTLED_LABEL,
)
from .contracts import ObservedObject, StepRun, WorkflowRun
from .metrics import MetricsRegistry
from .store import ObjectStore, StoreError
from .throttle import detect_throttle

logger = logging.getLogger(__name__)

ObjT = TypeVar("ObjT", bound=ObservedObject)


class UpdateFilter(Generic[ObjT]):
    """Base predicate; subclasses override ``update``."""

    def create(self, obj: ObjT) -> bool:
        return False

    def delete(self, obj: ObjT) -> bool:
        return False

    def generic(self, obj: ObjT) -> bool:
        return False


class OverheadEventFilter(UpdateFilter[WorkflowRun]):
    """Decide whether a run update warrants an overhead reconcile."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def update(self, old: WorkflowRun, new: WorkflowRun) -> bool:
        # runs that endured throttling are left out of overhead entirely
        if THROTTLED_LABEL in new.labels:
            return False
        if not is_done(old) and is_done(new):
            return True
        if is_done(old) and is_done(new):
            return False

        # both old and new may already be throttled when updates were merged
        # before the watch fired, so no comparison; reconcile checks the label
        try:
            result = await detect_throttle(new, self._store)
        except StoreError as e:
            logger.debug(f"throttle check for pipelinerun {new.key} failed: {e}")
        else:
            if result.throttled:
                return True

        # a quickly throttled step may not show up in the run's status right
        # away; keep reconciling until step references are seeded
        return not any(ref.kind == STEP_KIND for ref in new.step_references)


class ReferenceWaitFilter(UpdateFilter[ObjT]):
    """Record how long a pipeline or task reference took to resolve.

    The control plane may bump a condition's transition time without changing
    its reason. That is only logged; the recorded wait is not adjusted.
    """

    def __init__(self, metrics: MetricsRegistry, kind: str, resolving_reason: str) -> None:
        self._metrics = metrics
        self.kind = kind
        self.resolving_reason = resolving_reason

    def _has_reference(self, obj: ObjT) -> bool:
        if isinstance(obj, WorkflowRun):
            return obj.pipeline_ref is not None
        if isinstance(obj, StepRun):
            return obj.task_ref is not None
        return False

    def update(self, old: ObjT, new: ObjT) -> bool:
        new_condition = succeeded_condition(new)
        if new_condition is None:
            return False
        if not is_done(old) and is_done(new):
            # nothing was resolved
            if not self._has_reference(new):
                self._metrics.observe_reference_wait(new.namespace, self.kind, 0.0)
            return False
        if is_done(new):
            return False

        old_condition = succeeded_condition(old)
        if old_condition is None:
            return False
        resolving = self.resolving_reason
        if old_condition.reason == resolving and new_condition.reason != resolving:
            wait = duration_ms(old_condition.last_transition_time, new_condition.last_transition_time)
            self._metrics.observe_reference_wait(new.namespace, self.kind, wait)
            return False
        if (
            old_condition.reason == resolving
            and new_condition.reason == resolving
            and old_condition.last_transition_time != new_condition.last_transition_time
        ):
            logger.warning(
                f"resolving condition for {self.kind} {new.namespace}:{new.name} changed "
                f"from {old_condition!r} to {new_condition!r}"
            )
        return False


def pipeline_reference_wait_filter(metrics: MetricsRegistry) -> ReferenceWaitFilter[WorkflowRun]:
    return ReferenceWaitFilter(metrics, RUN_KIND, REASON_RESOLVING_PIPELINE_REF)


def task_reference_wait_filter(metrics: MetricsRegistry) -> ReferenceWaitFilter[StepRun]:
    return ReferenceWaitFilter(metrics, STEP_KIND, REASON_RESOLVING_TASK_REF)


class ScheduledDurationFilter(UpdateFilter[WorkflowRun]):
    """Record how long a finished run waited to be picked up by the controller."""

    def __init__(self, metrics: MetricsRegistry) -> None:
        self._metrics = metrics

    def update(self, old: WorkflowRun, new: WorkflowRun) -> bool:
        if not is_done(old) and is_done(new):
            seconds = duration_ms(new.creation_time, new.start_time) / 1000
            self._metrics.observe_run_scheduled(new.namespace, status_label(new), seconds)
        return False

