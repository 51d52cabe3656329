"""Stuck object detection across consecutive polling cycles.

An object is reported only after it fails its liveness predicate on two
consecutive scans; a single failing poll is treated as a race with a status
update and ignored.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, Iterator, Optional, Set, Tuple, TypeVar

from .conditions import is_done
from .contracts import StepRun, WorkflowRun
from .metrics import GaugeSink

logger = logging.getLogger(__name__)

T = TypeVar("T")
LivenessPredicate = Callable[[T], bool]


def run_not_kicked_off(run: WorkflowRun) -> bool:
    """The controller has not started the run yet."""
    return not is_done(run) and run.start_time is None


def step_not_started(step: StepRun) -> bool:
    return not is_done(step) and step.start_time is None


@dataclass
class ScanSet:
    """Failing identities per namespace seen during one polling cycle."""

    generation: int
    entries: Dict[str, Set[str]] = field(default_factory=dict)

    def failed(self, namespace: str, name: str) -> bool:
        return name in self.entries.get(namespace, ())


class DeadlockTracker(Generic[T]):
    """Double-buffered liveness window keyed by namespace.

    ``previous`` holds the last completed scan and ``current`` the one in
    progress. At the end of a cycle the buffers are swapped and a fresh
    generation starts; namespaces missing from the completed scan have their
    gauge zeroed.
    """

    def __init__(
        self,
        predicate: LivenessPredicate,
        sink: GaugeSink,
        exclude_namespaces: Optional[Iterable[str]] = None,
        name: str = "liveness",
    ) -> None:
        self.name = name
        self._predicate = predicate
        self._sink = sink
        self._exclude = frozenset(exclude_namespaces or ())
        self._lock = threading.RLock()
        self._previous = ScanSet(generation=0)
        self._current = ScanSet(generation=1)
        self._flagged: Dict[str, Set[str]] = {}

    @property
    def generation(self) -> int:
        return self._current.generation

    def stuck(self, namespace: str) -> Set[str]:
        """Identities flagged in ``namespace`` during the current cycle."""
        with self._lock:
            return set(self._flagged.get(namespace, ()))

    def tracked_namespaces(self) -> Set[str]:
        with self._lock:
            return set(self._previous.entries)

    def _evaluate(self, namespace: str, name: str, obj: T) -> bool:
        try:
            return bool(self._predicate(obj))
        except Exception:
            logger.warning(
                f"{self.name} predicate raised for {namespace}/{name}; treating as not failing",
                exc_info=True,
            )
            return False

    def observe(self, namespace: str, name: str, obj: T) -> bool:
        """Poll one object; returns ``True`` when this poll flagged it as stuck."""
        if namespace in self._exclude:
            return False

        with self._lock:
            failing_now = self._current.entries.setdefault(namespace, set())
            newly_flagged = False
            if self._evaluate(namespace, name, obj):
                failing_now.add(name)
                # no name label on the gauge, it would explode cardinality
                if self._previous.failed(namespace, name):
                    flagged = self._flagged.setdefault(namespace, set())
                    if name not in flagged:
                        flagged.add(name)
                        self._sink.set(namespace, len(flagged))
                        newly_flagged = True
                        logger.info(f"{self.name}: {namespace}/{name} failed two consecutive scans")

            if namespace not in self._flagged:
                self._sink.zero(namespace)
            return newly_flagged

    def end_cycle(self) -> None:
        with self._lock:
            completed = self._current
            for namespace in self._previous.entries:
                if namespace not in completed.entries:
                    logger.debug(f"{self.name}: namespace {namespace} left the watched set")
                    self._sink.zero(namespace)
            self._previous = completed
            self._current = ScanSet(generation=completed.generation + 1)
            self._flagged = {}

    @contextmanager
    def cycle(self) -> Iterator["DeadlockTracker[T]"]:
        """Hold the tracker for one full scan, swapping buffers on success.

        A scan aborted by an exception is thrown away; the previous completed
        scan stays the reference for the next cycle.
        """
        with self._lock:
            try:
                yield self
            except BaseException:
                self._discard_cycle()
                raise
            self.end_cycle()

    def _discard_cycle(self) -> None:
        logger.debug(f"{self.name}: discarding partial scan {self._current.generation}")
        self._current = ScanSet(generation=self._current.generation)
        self._flagged = {}

    def scan(self, objects: Iterable[Tuple[str, str, T]]) -> int:
        """Run one complete cycle over ``(namespace, name, object)`` triples."""
        flagged = 0
        with self.cycle():
            for namespace, name, obj in objects:
                if self.observe(namespace, name, obj):
                    flagged += 1
        return flagged
