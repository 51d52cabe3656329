"""Detection and tagging of runs whose steps are held back by quota or node capacity."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from .conditions import is_step_throttled
from .constants import STEP_KIND, THROTTLED_LABEL
from .contracts import WorkflowRun
from .store import ConflictError, NotFoundError, ObjectStore

logger = logging.getLogger(__name__)


class ThrottleResult(NamedTuple):
    throttled: bool
    culprit: Optional[str] = None


async def detect_throttle(run: WorkflowRun, store: ObjectStore) -> ThrottleResult:
    """Return the first throttled step referenced by ``run``.

    Steps that no longer exist are skipped; any other fetch error propagates.
    One throttled step is enough, so the scan stops at the first match.
    """
    for ref in run.step_references:
        if ref.kind != STEP_KIND:
            continue
        try:
            step = await store.get_step_run(run.namespace, ref.name)
        except NotFoundError:
            continue
        if is_step_throttled(step):
            return ThrottleResult(True, step.name)
    return ThrottleResult(False)


def is_tagged(run: WorkflowRun) -> bool:
    return THROTTLED_LABEL in run.labels


async def tag_if_throttled(run: WorkflowRun, store: ObjectStore) -> bool:
    """Label ``run`` with its throttled step, once.

    Returns ``True`` when this call applied the label. An existing label is
    never overwritten, and losing the optimistic write to a concurrent update
    is not an error; the next update event re-evaluates the run.
    """
    if is_tagged(run):
        return False
    result = await detect_throttle(run, store)
    if not result.throttled:
        return False

    logger.info(
        f"Tagging PipelineRun {run.namespace}:{run.name} as throttled because of {result.culprit}"
    )
    try:
        await store.patch_labels(run, {THROTTLED_LABEL: result.culprit})
    except ConflictError as e:
        logger.debug(f"lost race tagging pipelinerun {run.key}: {e}")
        return False
    except NotFoundError:
        logger.debug(f"pipelinerun {run.key} deleted before it could be tagged")
        return False
    return True
