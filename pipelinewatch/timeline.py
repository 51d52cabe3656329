"""Approximate execution timeline of a finished run from its steps' timestamps.

No dependency graph is consulted. Ordering is rebuilt from two total orders
(creation ascending, completion descending), which is always available from the
objects themselves but only approximates the real DAG edges.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from .conditions import duration_ms, outcome, pipeline_ref_name, step_display_name
from .constants import STEP_KIND
from .contracts import GapEntry, StepRun, WorkflowRun
from .store import NotFoundError, ObjectStore

logger = logging.getLogger(__name__)


class GapStrategy(Protocol):
    """Assigns each step a predecessor event and the idle gap before it."""

    def gaps(
        self,
        run: WorkflowRun,
        by_creation: Sequence[StepRun],
        by_completion_desc: Sequence[StepRun],
    ) -> List[GapEntry]:
        ...


def has_timeline(run: WorkflowRun) -> bool:
    """Runs without step references or a completion time have nothing to analyze."""
    if not run.step_references:
        return False
    # a run can be marked done a moment before its completion time is set
    return run.completion_time is not None


async def fetch_steps(run: WorkflowRun, store: ObjectStore) -> Optional[List[StepRun]]:
    """Fetch every step the run references.

    Returns ``None`` when a referenced step is gone; the run's bookkeeping is
    inconsistent and a retry will not fix it. Transient errors propagate so the
    event can be redelivered.
    """
    steps = []
    for ref in run.step_references:
        if ref.kind != STEP_KIND:
            continue
        try:
            steps.append(await store.get_step_run(run.namespace, ref.name))
        except NotFoundError as e:
            logger.info(f"could not calculate gap for taskrun {run.namespace}:{ref.name}: {e}")
            return None
    return steps


def order_steps(steps: Sequence[StepRun]) -> Tuple[List[StepRun], List[StepRun]]:
    """Sort by creation time, and separately by completion time, latest first.

    Steps that never completed (timed out, failed early) are left out of the
    completion ordering; nothing can have waited on them.
    """
    by_creation = sorted(steps, key=lambda s: s.creation_time)
    completed = [s for s in steps if s.completion_time is not None]
    by_completion_desc = sorted(completed, key=lambda s: s.completion_time, reverse=True)
    return by_creation, by_completion_desc


class StructuralGapStrategy:
    """Infer predecessors from creation/completion ordering alone."""

    def gaps(
        self,
        run: WorkflowRun,
        by_creation: Sequence[StepRun],
        by_completion_desc: Sequence[StepRun],
    ) -> List[GapEntry]:
        status = outcome(run)
        if status == "unknown":
            logger.warning(
                f"pipelinerun {run.namespace}:{run.name} marked done but has unknown succeed condition"
            )
            return []

        pipeline = pipeline_ref_name(run)
        entries = []
        for index, step in enumerate(by_creation):
            upcoming = step_display_name(step)
            if index == 0:
                gap = duration_ms(run.creation_time, step.creation_time)
                logger.debug(f"first task {upcoming} for pipeline {pipeline} has gap {gap}")
                entries.append(
                    GapEntry(
                        status=status,
                        pipeline=pipeline,
                        completed=pipeline,
                        upcoming=upcoming,
                        gap=gap,
                    )
                )
                continue

            first = by_creation[0]
            # a step created before the first step finished had nothing to wait
            # on yet, so it is measured from the run like the first step
            if first.completion_time is not None and first.completion_time > step.creation_time:
                logger.debug(f"task {upcoming} considered parallel for pipeline {pipeline}")
                gap = duration_ms(run.creation_time, step.creation_time)
                entries.append(
                    GapEntry(
                        status=status,
                        pipeline=pipeline,
                        completed=pipeline,
                        upcoming=upcoming,
                        gap=gap,
                    )
                )
                continue

            completed, reference = self._predecessor(run, step, by_completion_desc)
            gap = duration_ms(reference, step.creation_time)
            logger.debug(f"gap entry completed {completed} upcoming {upcoming} gap {gap}")
            entries.append(
                GapEntry(
                    status=status,
                    pipeline=pipeline,
                    completed=completed,
                    upcoming=upcoming,
                    gap=gap,
                )
            )
        return entries

    @staticmethod
    def _predecessor(
        run: WorkflowRun, step: StepRun, by_completion_desc: Sequence[StepRun]
    ) -> Tuple[str, datetime]:
        """Latest completion no later than ``step``'s creation, else the run itself."""
        for candidate in by_completion_desc:
            if candidate.name == step.name:
                continue
            if candidate.completion_time <= step.creation_time:
                return step_display_name(candidate), candidate.completion_time
        return pipeline_ref_name(run), run.creation_time


async def reconstruct_gaps(
    run: WorkflowRun, store: ObjectStore, strategy: Optional[GapStrategy] = None
) -> Optional[List[GapEntry]]:
    """Compute one gap entry per step of a finished run.

    Returns an empty list when the run has nothing to analyze and ``None`` when
    analysis was abandoned because a referenced step no longer exists.
    """
    if not has_timeline(run):
        return []
    steps = await fetch_steps(run, store)
    if steps is None:
        return None
    by_creation, by_completion_desc = order_steps(steps)
    return (strategy or StructuralGapStrategy()).gaps(run, by_creation, by_completion_desc)
