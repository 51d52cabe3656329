"""Timeline reconstruction tests."""

import pytest

from pipelinewatch.store import TransientStoreError
from pipelinewatch.timeline import (
    StructuralGapStrategy,
    has_timeline,
    order_steps,
    reconstruct_gaps,
)


def _seed(store, run, steps):
    stored = store.add_run(run)
    for step in steps:
        store.add_step(step)
    return stored


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["True", "False"])
async def test_single_step_gap_is_measured_from_run_creation(store, make_run, make_step, status):
    run = make_run(started=1, completed=400, status=status, steps=["init"])
    step = make_step("init", created=7.5, completed=100, status=status, task="init")
    run = _seed(store, run, [step])

    gaps = await reconstruct_gaps(run, store)

    assert len(gaps) == 1
    assert gaps[0].gap == 7500
    assert gaps[0].upcoming == "init"
    assert gaps[0].completed == run.name
    assert gaps[0].status == ("succeeded" if status == "True" else "failed")


@pytest.mark.asyncio
async def test_step_created_before_first_completes_is_parallel(store, make_run, make_step):
    run = make_run(started=0, completed=400, status="True", steps=["a", "b"])
    first = make_step("a", created=2, completed=60, status="True", task="a")
    second = make_step("b", created=10, completed=50, status="True", task="b")
    run = _seed(store, run, [second, first])

    gaps = await reconstruct_gaps(run, store)

    assert [g.upcoming for g in gaps] == ["a", "b"]
    assert gaps[1].completed == run.name
    assert gaps[1].gap == 10000


@pytest.mark.asyncio
async def test_sequential_step_uses_latest_prior_completion(store, make_run, make_step):
    run = make_run(started=0, completed=600, status="True", steps=["clone", "build", "lint", "push"])
    steps = [
        make_step("clone", created=1, completed=20, status="True", task="clone"),
        make_step("build", created=22, completed=200, status="True", task="build"),
        make_step("lint", created=23, completed=60, status="True", task="lint"),
        # both build and lint finished before push was created; build is the latest
        make_step("push", created=205, completed=300, status="True", task="push"),
    ]
    run = _seed(store, run, steps)

    gaps = {g.upcoming: g for g in await reconstruct_gaps(run, store)}

    assert gaps["clone"].gap == 1000
    assert gaps["build"].completed == "clone"
    assert gaps["build"].gap == 2000
    assert gaps["lint"].completed == "clone"
    assert gaps["lint"].gap == 3000
    assert gaps["push"].completed == "build"
    assert gaps["push"].gap == 5000


@pytest.mark.asyncio
async def test_falls_back_to_run_creation_when_nothing_completed_earlier(store, make_run, make_step):
    run = make_run(created=0, started=0, completed=600, status="False", steps=["a", "b"])
    steps = [
        make_step("a", created=5, status="False", task="a"),
        make_step("b", created=30, completed=90, status="False", task="b"),
    ]
    run = _seed(store, run, steps)

    gaps = await reconstruct_gaps(run, store)

    assert gaps[1].upcoming == "b"
    assert gaps[1].completed == run.name
    assert gaps[1].gap == 30000
    assert all(g.status == "failed" for g in gaps)


@pytest.mark.asyncio
async def test_missing_step_aborts_without_error(store, make_run, make_step):
    run = make_run(started=0, completed=600, status="True", steps=["a", "gone"])
    run = _seed(store, run, [make_step("a", created=1, completed=10, status="True")])

    assert await reconstruct_gaps(run, store) is None


@pytest.mark.asyncio
async def test_transient_fetch_error_propagates(make_run, make_step):
    class FlakyStore:
        async def get_step_run(self, namespace, name):
            raise TransientStoreError("apiserver unavailable")

    run = make_run(started=0, completed=600, status="True", steps=["a"])

    with pytest.raises(TransientStoreError):
        await reconstruct_gaps(run, FlakyStore())


@pytest.mark.asyncio
async def test_runs_without_data_are_skipped(store, make_run):
    no_steps = make_run(started=0, completed=600, status="True")
    not_complete = make_run(started=0, status="True", steps=["a"])

    assert not has_timeline(no_steps)
    assert not has_timeline(not_complete)
    assert await reconstruct_gaps(no_steps, store) == []
    assert await reconstruct_gaps(not_complete, store) == []


@pytest.mark.asyncio
async def test_non_step_references_are_ignored(store, make_run, make_step):
    run = make_run(started=0, completed=600, status="True", steps=["a"])
    run.step_references.append(run.step_references[0].model_copy(update={"kind": "CustomRun", "name": "x"}))
    run = _seed(store, run, [make_step("a", created=3, completed=10, status="True")])

    gaps = await reconstruct_gaps(run, store)
    assert len(gaps) == 1


def test_order_steps_excludes_incomplete_from_completion_order(make_step):
    steps = [
        make_step("late", created=30, completed=40),
        make_step("early", created=10, completed=90),
        make_step("pending", created=20),
    ]
    by_creation, by_completion = order_steps(steps)

    assert [s.name for s in by_creation] == ["early", "pending", "late"]
    assert [s.name for s in by_completion] == ["early", "late"]


def test_unknown_run_outcome_yields_no_gaps(make_run, make_step):
    run = make_run(started=0, completed=600, status="Unknown", steps=["a"])
    steps = [make_step("a", created=3, completed=10)]

    assert StructuralGapStrategy().gaps(run, *order_steps(steps)) == []
