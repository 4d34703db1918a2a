"""Prometheus metrics definitions."""

from prometheus_client import Counter, Histogram

# Trigger metrics
TRIGGERS_RECEIVED = Counter(
    "runbook_triggers_received_total",
    "Total number of trigger requests received",
    ["mode"],
)

RUNBOOKS_SELECTED = Counter(
    "runbook_selected_total",
    "Total number of runbooks selected for execution",
    ["mode"],
)

# Execution metrics
EXECUTIONS_FINISHED = Counter(
    "runbook_executions_finished_total",
    "Total number of executions that reached a terminal status",
    ["status"],
)

PERSISTENCE_ERRORS = Counter(
    "runbook_persistence_errors_total",
    "Total number of execution record write failures",
    ["operation"],
)

# Step metrics
STEP_RESULTS = Counter(
    "runbook_step_results_total",
    "Total number of step results by action and outcome",
    ["action", "status"],
)

STEP_LATENCY = Histogram(
    "runbook_step_latency_seconds",
    "Step execution latency in seconds",
    ["action"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
)
