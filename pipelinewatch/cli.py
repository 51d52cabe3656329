"""Command line interface for offline pipelinewatch analysis."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer
import yaml

from pipelinewatch.conditions import is_done, pipeline_ref_name
from pipelinewatch.config import load_config
from pipelinewatch.constants import RUN_KIND, STEP_KIND
from pipelinewatch.contracts import StepRun, WorkflowRun
from pipelinewatch.overhead import OverheadAggregator, OverheadResult
from pipelinewatch.store import InMemoryObjectStore
from pipelinewatch.throttle import ThrottleResult, detect_throttle
from pipelinewatch.timeline import has_timeline, reconstruct_gaps

app = typer.Typer(help="CLI for pipelinewatch overhead analysis")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Python logging level"),
) -> None:
    """pipelinewatch CLI entry point."""
    logging.basicConfig(level=log_level.upper())


def _load_export(path: Path) -> Tuple[WorkflowRun, List[StepRun]]:
    run: Optional[WorkflowRun] = None
    steps = []
    with open(path) as f:
        for doc in yaml.safe_load_all(f):
            if not doc:
                continue
            if not isinstance(doc, dict):
                raise ValueError(f"expected a mapping, got {type(doc).__name__}")
            items = doc.get("items") if doc.get("kind") == "List" else [doc]
            for item in items or []:
                if not isinstance(item, dict):
                    raise ValueError(f"expected a mapping in items, got {type(item).__name__}")
                kind = item.get("kind")
                if kind == RUN_KIND and run is None:
                    run = WorkflowRun.from_manifest(item)
                elif kind == STEP_KIND:
                    steps.append(StepRun.from_manifest(item))
    if run is None:
        raise ValueError(f"no {RUN_KIND} found in {path}")
    return run, steps


async def _analyze(
    run: WorkflowRun, steps: List[StepRun], aggregator: OverheadAggregator
) -> Tuple[ThrottleResult, Optional[OverheadResult], bool]:
    store = InMemoryObjectStore()
    stored_run = store.add_run(run)
    for step in steps:
        store.add_step(step)
    throttle = await detect_throttle(stored_run, store)
    if not is_done(stored_run) or aggregator.excluded(stored_run) or not has_timeline(stored_run):
        return throttle, None, False
    gaps = await reconstruct_gaps(stored_run, store)
    if gaps is None:
        return throttle, None, True
    return throttle, aggregator.aggregate(stored_run, gaps), False


@app.command("analyze")
def analyze(
    path: Path,
    threshold: Optional[float] = typer.Option(
        None, help="Noise filter threshold in milliseconds"
    ),
) -> None:
    """
    Reconstruct the timeline of an exported PipelineRun and report its overhead.

    The file holds YAML documents (or a ``kind: List``) with one PipelineRun
    and the TaskRuns it references, e.g. the output of
    ``kubectl get pipelinerun,taskrun -o yaml``.

    Example:
        pipelinewatch analyze ./exports/build-run.yaml
        pipelinewatch analyze ./exports/build-run.yaml --threshold 0
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        run, steps = _load_export(path)
    except (ValueError, yaml.YAMLError) as exc:
        typer.secho(f"Could not load {path}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    config = load_config()
    if threshold is not None:
        config.overhead.filter_threshold_ms = threshold
    aggregator = OverheadAggregator(config.overhead)

    throttle, result, missing = asyncio.run(_analyze(run, steps, aggregator))

    typer.echo(f"PipelineRun {run.namespace}/{run.name} ({pipeline_ref_name(run)})")
    if throttle.throttled:
        typer.echo(f"Throttled: yes ({throttle.culprit})")
    else:
        typer.echo("Throttled: no")
    if missing:
        typer.echo("A referenced TaskRun is missing; nothing to analyze")
        return
    if result is None:
        reason = "not done" if not is_done(run) else "excluded or incomplete"
        typer.echo(f"No overhead computed ({reason})")
        return

    for entry in result.gaps:
        typer.echo(f"- {entry.completed} -> {entry.upcoming}: {entry.gap:.0f}ms")
    typer.echo(f"Total duration: {result.total_duration:.0f}ms")
    for label, ratio in (
        ("Execution overhead", result.execution_ratio),
        ("Scheduling overhead", result.scheduling_ratio),
    ):
        typer.echo(f"{label}: " + ("filtered" if ratio is None else f"{ratio:.4f}"))
    if result.alert:
        typer.secho("Execution overhead is above the alert ratio", fg=typer.colors.YELLOW)


@app.command("config")
def show_config(path: Optional[Path] = None) -> None:
    """Print the effective configuration, environment overrides included."""
    config = load_config(str(path) if path else None)
    typer.echo(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=True))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
