"""Event-driven overhead analysis for workflow runs."""

from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple, Optional

from .conditions import is_done
from .config import WatchConfig
from .constants import STEP_KIND
from .contracts import WorkflowRun
from .events import OverheadEventFilter
from .metrics import MetricsRegistry
from .overhead import OverheadAggregator, OverheadResult
from .store import NotFoundError, ObjectStore
from .throttle import tag_if_throttled
from .timeline import GapStrategy

logger = logging.getLogger(__name__)


class ReconcileResult(NamedTuple):
    requeue: bool = False
    overhead: Optional[OverheadResult] = None


class OverheadReconciler:
    """Runs throttle tagging and overhead accounting for one run at a time.

    Safe to call concurrently for different runs. Calling it again for a run
    that was already analyzed or tagged has no further effect beyond
    recomputing the same values; the delivery layer is expected to suppress
    duplicate done transitions via ``OverheadEventFilter``.
    """

    def __init__(
        self,
        store: ObjectStore,
        metrics: MetricsRegistry,
        config: Optional[WatchConfig] = None,
        strategy: Optional[GapStrategy] = None,
    ) -> None:
        self.config = config or WatchConfig()
        self._store = store
        self._metrics = metrics
        self._strategy = strategy
        self.aggregator = OverheadAggregator(self.config.overhead)
        self.event_filter = OverheadEventFilter(store)

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Analyze ``namespace/name`` within the configured fetch deadline.

        Raises:
            TransientStoreError: a fetch failed in a way worth redelivering.
            asyncio.TimeoutError: the deadline passed; nothing was recorded.
        """
        return await asyncio.wait_for(
            self._reconcile(namespace, name), timeout=self.config.fetch_timeout_seconds
        )

    async def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        try:
            run = await self._store.get_workflow_run(namespace, name)
        except NotFoundError:
            logger.debug(f"ignoring deleted pipelinerun {namespace}/{name}")
            return ReconcileResult()

        if is_done(run):
            result = await self.aggregator.analyze(run, self._store, self._strategy)
            if result is not None:
                # every await is behind us, so a cancelled reconcile records nothing
                self.aggregator.record(result, self._metrics)
            return ReconcileResult(overhead=result)

        if not any(ref.kind == STEP_KIND for ref in run.step_references):
            return ReconcileResult(requeue=True)
        # tagging happens here rather than in the filter so errors are retried
        await tag_if_throttled(run, self._store)
        return ReconcileResult()

    async def handle_update(self, old: WorkflowRun, new: WorkflowRun) -> Optional[ReconcileResult]:
        """Filter an update event and reconcile it when it qualifies.

        The filter's step fetches run under the same deadline as ``reconcile``.
        """
        triggered = await asyncio.wait_for(
            self.event_filter.update(old, new), timeout=self.config.fetch_timeout_seconds
        )
        if not triggered:
            return None
        return await self.reconcile(new.namespace, new.name)
