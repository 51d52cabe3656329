"""Overhead aggregation and noise filter tests."""

import pytest
from conftest import sample_count, sample_sum

from pipelinewatch.config import OverheadConfig
from pipelinewatch.constants import (
    EXECUTION_OVERHEAD_METRIC,
    SCHEDULE_OVERHEAD_METRIC,
    THROTTLED_LABEL,
)
from pipelinewatch.contracts import GapEntry
from pipelinewatch.overhead import OverheadAggregator, should_filter


def _gap(ms, status="succeeded"):
    return GapEntry(status=status, pipeline="p", completed="a", upcoming="b", gap=ms)


@pytest.mark.parametrize(
    "gap_total,total,expected",
    [
        (10.0, 299999.0, True),
        (10.0, 300000.0, False),
        (0.0, 1000.0, False),
        (0.0, 0.0, False),
    ],
)
def test_should_filter(gap_total, total, expected):
    assert should_filter(gap_total, total, 300000.0) is expected


def test_aggregate_computes_both_ratios(make_run):
    run = make_run(created=0, started=10, completed=610, status="True", steps=["a"])
    result = OverheadAggregator().aggregate(run, [_gap(3000), _gap(9000)])

    assert result.total_duration == 600000
    assert result.gap_total == 12000
    assert result.execution_ratio == pytest.approx(0.02)
    assert result.scheduling_ratio == pytest.approx(10000 / 600000)
    assert result.applied
    assert not result.alert


def test_aggregate_filters_short_runs(make_run):
    run = make_run(created=0, started=1, completed=61, status="True", steps=["a"])
    result = OverheadAggregator().aggregate(run, [_gap(500)])

    assert result.execution_ratio is None
    assert result.scheduling_ratio is None
    assert not result.applied


def test_zero_gap_short_run_is_still_recorded(make_run):
    run = make_run(created=0, started=0, completed=60, status="True", steps=["a"])
    result = OverheadAggregator().aggregate(run, [_gap(0)])

    assert result.execution_ratio == 0
    assert result.scheduling_ratio == 0


def test_threshold_is_configurable(make_run):
    run = make_run(created=0, started=1, completed=61, status="True", steps=["a"])
    aggregator = OverheadAggregator(OverheadConfig(filter_threshold_ms=1000))

    result = aggregator.aggregate(run, [_gap(600)])
    assert result.execution_ratio == pytest.approx(0.01)


def test_alert_ratio_marks_result(make_run, caplog):
    run = make_run(created=0, started=0, completed=400, status="False", steps=["a"])
    aggregator = OverheadAggregator(OverheadConfig(alert_ratio=0.05))

    with caplog.at_level("INFO", logger="pipelinewatch.overhead"):
        result = aggregator.aggregate(run, [_gap(30000, "failed")])

    assert result.alert
    assert result.status == "failed"
    assert "alert level execution overhead" in caplog.text
    assert "start a end b status failed gap 30000.0" in caplog.text


def test_throttled_and_unstarted_runs_are_excluded(make_run):
    aggregator = OverheadAggregator()
    throttled = make_run(started=0, completed=600, status="True", labels={THROTTLED_LABEL: "a"})
    unstarted = make_run(completed=600, status="True")

    assert aggregator.excluded(throttled)
    assert aggregator.excluded(unstarted)


def test_record_emits_only_applied_ratios(make_run, metrics):
    aggregator = OverheadAggregator()
    run = make_run(namespace="ns1", created=0, started=0, completed=400, status="True", steps=["a"])
    result = aggregator.aggregate(run, [_gap(4000)])
    result.scheduling_ratio = None

    aggregator.record(result, metrics)

    labels = {"namespace": "ns1", "status": "succeeded"}
    assert sample_count(metrics, EXECUTION_OVERHEAD_METRIC, labels) == 1
    assert sample_sum(metrics, EXECUTION_OVERHEAD_METRIC, labels) == pytest.approx(0.01)
    assert sample_count(metrics, SCHEDULE_OVERHEAD_METRIC, labels) == 0


@pytest.mark.asyncio
async def test_analyze_end_to_end_in_memory(store, make_run, make_step):
    run = store.add_run(make_run(created=0, started=0, completed=400, status="True", steps=["a", "b"]))
    store.add_step(make_step("a", created=1, completed=100, status="True", task="a"))
    store.add_step(make_step("b", created=104, completed=390, status="True", task="b"))

    result = await OverheadAggregator().analyze(run, store)

    assert [g.gap for g in result.gaps] == [1000, 4000]
    assert result.execution_ratio == pytest.approx(5000 / 400000)


@pytest.mark.asyncio
async def test_analyze_skips_missing_steps(store, make_run):
    run = store.add_run(make_run(started=0, completed=400, status="True", steps=["gone"]))

    assert await OverheadAggregator().analyze(run, store) is None


@pytest.mark.asyncio
async def test_analyze_run_with_only_custom_children(store, make_run, metrics):
    run = make_run(created=0, started=5, completed=365, status="True", steps=["approve"])
    run.step_references[0].kind = "CustomRun"
    run = store.add_run(run)
    aggregator = OverheadAggregator()

    result = await aggregator.analyze(run, store)
    aggregator.record(result, metrics)

    assert result.gaps == []
    assert result.execution_ratio == 0
    assert result.scheduling_ratio == pytest.approx(5000 / 360000)
    labels = {"namespace": "tenant-a", "status": "succeeded"}
    assert sample_count(metrics, EXECUTION_OVERHEAD_METRIC, labels) == 1
    assert sample_sum(metrics, SCHEDULE_OVERHEAD_METRIC, labels) == pytest.approx(5000 / 360000)


@pytest.mark.asyncio
async def test_analyze_skips_run_without_references(store, make_run):
    run = store.add_run(make_run(started=0, completed=400, status="True"))

    assert await OverheadAggregator().analyze(run, store) is None
