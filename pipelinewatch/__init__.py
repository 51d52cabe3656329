"""pipelinewatch: overhead and liveness telemetry for workflow control planes."""

from .config import WatchConfig, load_config
from .contracts import GapEntry, StepRun, WorkflowRun
from .liveness import DeadlockTracker
from .metrics import MetricsRegistry
from .overhead import OverheadAggregator
from .poller import LivenessPoller
from .reconcile import OverheadReconciler
from .store import get_store
from .throttle import detect_throttle, tag_if_throttled
from .timeline import StructuralGapStrategy, reconstruct_gaps

__version__ = "0.1.0"
__all__ = [
    "DeadlockTracker",
    "GapEntry",
    "LivenessPoller",
    "MetricsRegistry",
    "OverheadAggregator",
    "OverheadReconciler",
    "StepRun",
    "StructuralGapStrategy",
    "WatchConfig",
    "WorkflowRun",
    "detect_throttle",
    "get_store",
    "load_config",
    "reconstruct_gaps",
    "tag_if_throttled",
]
