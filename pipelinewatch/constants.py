"""Shared constants for pipelinewatch."""

# Labels written to / read from observed objects
THROTTLED_LABEL = "pipelineservice.appstudio.io/throttled"
TASK_LABEL = "tekton.dev/task"
PIPELINE_TASK_LABEL = "tekton.dev/pipelineTask"
CLUSTER_TASK_LABEL = "tekton.dev/clusterTask"
TASK_RUN_LABEL = "tekton.dev/taskRun"
PIPELINE_LABEL = "tekton.dev/pipeline"
PIPELINE_RUN_LABEL = "tekton.dev/pipelineRun"

STEP_KIND = "TaskRun"
RUN_KIND = "PipelineRun"
CONDITION_SUCCEEDED = "Succeeded"

# Reason codes found on the Succeeded condition
REASON_RESOLVING_PIPELINE_REF = "ResolvingPipelineRef"
REASON_RESOLVING_TASK_REF = "ResolvingTaskRef"
REASON_EXCEEDED_QUOTA = "ExceededResourceQuota"
REASON_EXCEEDED_NODE_RESOURCES = "ExceededNodeResources"
THROTTLE_REASONS = frozenset({REASON_EXCEEDED_QUOTA, REASON_EXCEEDED_NODE_RESOURCES})

# Metric label names and values
NS_LABEL = "namespace"
STATUS_LABEL = "status"
KIND_LABEL = "kind"
SUCCEEDED = "succeeded"
FAILED = "failed"

DEFAULT_THRESHOLD_MS = 300000.0  # 5 minutes
DEFAULT_ALERT_RATIO = 0.05
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 60.0

# Environment overrides
FILTER_THRESHOLD_ENV = "FILTER_THRESHOLD"
STEP_START_FILTER_ENV = "STEP_START_METRIC_NAMESPACE_FILTER"
RUN_KICKOFF_FILTER_ENV = "RUN_KICKOFF_METRIC_NAMESPACE_FILTER"
CONFIG_PATH_ENV = "PIPELINEWATCH_CONFIG"
STORE_BACKEND_ENV = "PIPELINEWATCH_STORE"
API_URL_ENV = "PIPELINEWATCH_API_URL"
TOKEN_ENV = "PIPELINEWATCH_TOKEN"

# Exported series
EXECUTION_OVERHEAD_METRIC = "pipelinewatch_execution_overhead_ratio"
SCHEDULE_OVERHEAD_METRIC = "pipelinewatch_schedule_overhead_ratio"
REFERENCE_WAIT_METRIC = "pipelinewatch_reference_wait_milliseconds"
RUN_SCHEDULED_METRIC = "pipelinewatch_run_scheduled_seconds"
RUN_KICKOFF_STUCK_METRIC = "pipelinewatch_run_kickoff_stuck"
STEP_START_STUCK_METRIC = "pipelinewatch_step_start_stuck"
