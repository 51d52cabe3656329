"""Execution and scheduling overhead ratios for finished runs."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .conditions import duration_ms, status_label
from .config import OverheadConfig
from .constants import THROTTLED_LABEL
from .contracts import GapEntry, WorkflowRun
from .metrics import MetricsRegistry
from .store import ObjectStore
from .timeline import GapStrategy, has_timeline, reconstruct_gaps

logger = logging.getLogger(__name__)


def should_filter(gap_total: float, total_duration: float, threshold: float) -> bool:
    """Short runs with any overhead are dominated by fixed costs; leave them out.

    A zero gap total is never filtered.
    """
    return gap_total > 0 and total_duration < threshold


class OverheadResult(BaseModel):
    """Outcome of aggregating one run; ratios are ``None`` when filtered."""

    namespace: str
    name: str
    status: str
    total_duration: float
    gap_total: float
    schedule_gap: float
    execution_ratio: Optional[float] = None
    scheduling_ratio: Optional[float] = None
    alert: bool = False
    gaps: List[GapEntry] = Field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.execution_ratio is not None or self.scheduling_ratio is not None


class OverheadAggregator:
    """Turns gap entries into overhead ratios and records them."""

    def __init__(self, config: Optional[OverheadConfig] = None) -> None:
        self.config = config or OverheadConfig()

    def excluded(self, run: WorkflowRun) -> bool:
        """Runs whose steps were throttled do not count toward orchestration overhead."""
        culprit = run.labels.get(THROTTLED_LABEL)
        if culprit is not None:
            logger.info(
                f"Skipping overhead for pipelinerun {run.namespace}:{run.name} "
                f"because taskrun {culprit} was throttled"
            )
            return True
        if run.start_time is None or run.completion_time is None:
            logger.debug(f"pipelinerun {run.key} has no start or completion time")
            return True
        return False

    def _ratio(self, kind: str, run: WorkflowRun, gap: float, total: float) -> Optional[float]:
        if should_filter(gap, total, self.config.filter_threshold_ms):
            logger.debug(f"filtering {kind} metric for {run.key} with gap {gap} and total {total}")
            return None
        if total <= 0:
            logger.debug(f"no {kind} metric for {run.key}, total duration is {total}")
            return None
        ratio = gap / total
        logger.debug(
            f"registering {kind} metric for {run.key} with gap {gap} and total {total} and overhead {ratio}"
        )
        return ratio

    def aggregate(self, run: WorkflowRun, gaps: List[GapEntry]) -> OverheadResult:
        """Compute both ratios for ``run``; nothing is recorded here."""
        total = duration_ms(run.start_time, run.completion_time)
        gap_total = sum(entry.gap for entry in gaps)
        schedule_gap = duration_ms(run.creation_time, run.start_time)

        execution_ratio = self._ratio("execution", run, gap_total, total)
        alert = execution_ratio is not None and execution_ratio >= self.config.alert_ratio
        if alert:
            breakdown = "".join(
                f"  start {ge.completed} end {ge.upcoming} status {ge.status} gap {ge.gap}\n"
                for ge in gaps
            )
            logger.info(
                f"PipelineRun {run.namespace}:{run.name} has alert level execution overhead with "
                f"a value of {execution_ratio} where gapTotal {gap_total} and totalDuration {total} "
                f"and individual gaps: \n{breakdown}"
            )

        return OverheadResult(
            namespace=run.namespace,
            name=run.name,
            status=status_label(run),
            total_duration=total,
            gap_total=gap_total,
            schedule_gap=schedule_gap,
            execution_ratio=execution_ratio,
            scheduling_ratio=self._ratio("scheduling", run, schedule_gap, total),
            alert=alert,
            gaps=gaps,
        )

    def record(self, result: OverheadResult, metrics: MetricsRegistry) -> None:
        if result.execution_ratio is not None:
            metrics.observe_execution_overhead(result.namespace, result.status, result.execution_ratio)
        if result.scheduling_ratio is not None:
            metrics.observe_schedule_overhead(result.namespace, result.status, result.scheduling_ratio)

    async def analyze(
        self,
        run: WorkflowRun,
        store: ObjectStore,
        strategy: Optional[GapStrategy] = None,
    ) -> Optional[OverheadResult]:
        """Reconstruct and aggregate a finished run.

        Returns ``None`` when the run is excluded, has nothing to analyze, or
        references a step that no longer exists. A run whose children are all
        non-TaskRun kinds yields no gaps but still gets both ratios.
        """
        if self.excluded(run) or not has_timeline(run):
            return None
        gaps = await reconstruct_gaps(run, store, strategy)
        if gaps is None:
            return None
        return self.aggregate(run, gaps)
