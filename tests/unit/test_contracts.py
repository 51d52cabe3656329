from datetime import datetime, timezone

from pipelinewatch.contracts import StepRun, WorkflowRun

PIPELINE_RUN = {
    "apiVersion": "tekton.dev/v1",
    "kind": "PipelineRun",
    "metadata": {
        "name": "build-7x2kq",
        "generateName": "build-",
        "namespace": "tenant-a",
        "resourceVersion": "4711",
        "creationTimestamp": "2024-03-01T12:00:00Z",
        "labels": {"app": "demo"},
    },
    "spec": {
        "pipelineRef": {
            "resolver": "bundles",
            "params": [
                {"name": "name", "value": "docker-build"},
                {"name": "kind", "value": "pipeline"},
                {"name": "list", "value": ["a", "b"]},
            ],
        }
    },
    "status": {
        "startTime": "2024-03-01T12:00:05Z",
        "completionTime": "2024-03-01T12:06:05Z",
        "conditions": [
            {
                "type": "Succeeded",
                "status": "True",
                "reason": "Succeeded",
                "lastTransitionTime": "2024-03-01T12:06:05Z",
            }
        ],
        "childReferences": [
            {"kind": "TaskRun", "name": "build-7x2kq-clone"},
            {"kind": "CustomRun", "name": "build-7x2kq-approve"},
            {"kind": "TaskRun"},
        ],
    },
}


def test_workflow_run_from_manifest():
    run = WorkflowRun.from_manifest(PIPELINE_RUN)

    assert run.key == "tenant-a/build-7x2kq"
    assert run.generate_name == "build-"
    assert run.resource_version == "4711"
    assert run.creation_time == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert run.completion_time == datetime(2024, 3, 1, 12, 6, 5, tzinfo=timezone.utc)
    assert run.conditions[0].status == "True"
    assert [(r.kind, r.name) for r in run.step_references] == [
        ("TaskRun", "build-7x2kq-clone"),
        ("CustomRun", "build-7x2kq-approve"),
    ]
    assert run.pipeline_ref.name == ""
    assert run.pipeline_ref.params == {"name": "docker-build", "kind": "pipeline", "list": ""}


def test_pending_step_run_from_manifest():
    step = StepRun.from_manifest(
        {
            "kind": "TaskRun",
            "metadata": {
                "name": "build-7x2kq-clone",
                "namespace": "tenant-a",
                "creationTimestamp": "2024-03-01T12:00:10Z",
                "labels": {"tekton.dev/pipelineTask": "clone"},
            },
            "spec": {"taskRef": {"name": "git-clone"}},
            "status": {
                "conditions": [
                    {"type": "Succeeded", "status": "Unknown", "reason": "ExceededResourceQuota"}
                ]
            },
        }
    )

    assert step.start_time is None
    assert step.task_ref.name == "git-clone"
    assert step.conditions[0].reason == "ExceededResourceQuota"
    assert step.conditions[0].last_transition_time is None


def test_run_without_status_or_reference():
    run = WorkflowRun.from_manifest(
        {"metadata": {"name": "r", "namespace": "n", "creationTimestamp": "2024-03-01T12:00:00Z"}}
    )
    assert run.pipeline_ref is None
    assert run.step_references == []
    assert run.conditions == []
