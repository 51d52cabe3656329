"""Periodic polling loop feeding the liveness trackers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import WatchConfig
from .contracts import StepRun, WorkflowRun
from .liveness import DeadlockTracker, run_not_kicked_off, step_not_started
from .metrics import GaugeSink, MetricsRegistry
from .store import ObjectStore, TransientStoreError

logger = logging.getLogger(__name__)


class LivenessPoller:
    """Single polling loop; one scan of each tracker per cycle."""

    def __init__(
        self,
        store: ObjectStore,
        metrics: MetricsRegistry,
        config: Optional[WatchConfig] = None,
    ) -> None:
        self.config = config or WatchConfig()
        self._store = store
        self.run_kickoff: DeadlockTracker[WorkflowRun] = DeadlockTracker(
            run_not_kicked_off,
            GaugeSink(metrics.run_kickoff_stuck),
            exclude_namespaces=self.config.filters.run_kickoff_namespaces,
            name="run-kickoff",
        )
        self.step_start: DeadlockTracker[StepRun] = DeadlockTracker(
            step_not_started,
            GaugeSink(metrics.step_start_stuck),
            exclude_namespaces=self.config.filters.step_start_namespaces,
            name="step-start",
        )
        self._stopped = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

    async def poll_once(self) -> int:
        """Scan every run and step once; returns how many objects were newly flagged."""
        async with self._cycle_lock:
            runs = await self._store.list_workflow_runs()
            steps = await self._store.list_step_runs()
            flagged = self.run_kickoff.scan((r.namespace, r.name, r) for r in runs)
            flagged += self.step_start.scan((s.namespace, s.name, s) for s in steps)
        if flagged:
            logger.info(f"liveness poll flagged {flagged} stuck objects")
        return flagged

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        interval = self.config.liveness.poll_interval_seconds
        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except TransientStoreError as e:
                logger.warning(f"liveness poll skipped: {e}")
            except Exception:
                # a failed cycle is discarded; the next one starts from the last completed scan
                logger.warning("liveness poll failed", exc_info=True)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
