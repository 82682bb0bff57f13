"""Prometheus metrics for conversation runs."""

from prometheus_client import Counter, Histogram

RUNS_TOTAL = Counter(
    "persona_chat_runs_total",
    "Runs that reached a terminal state, by status.",
    ["status"],
)

RUN_POLLS = Histogram(
    "persona_chat_run_polls",
    "Status fetches needed before a run became terminal.",
    buckets=(1, 2, 3, 5, 10, 20, 30, 60, 120),
)

SESSIONS_CREATED = Counter(
    "persona_chat_sessions_created_total",
    "Remote sessions created.",
)

GENERATION_ERRORS = Counter(
    "persona_chat_generation_errors_total",
    "Failed generate calls, by error kind.",
    ["kind"],
)

GENERATION_LATENCY = Histogram(
    "persona_chat_generation_seconds",
    "Wall-clock time of a generate call.",
)
