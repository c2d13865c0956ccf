"""Prometheus counters for case workflow events.

HTTP request metrics live with the tracing middleware; these count domain
transitions and are incremented by the services after a successful write.
"""

from prometheus_client import Counter

CASES_CREATED = Counter(
    "reconciliation_cases_created_total",
    "Cases filed",
    ["case_type"],
)
STATUS_CHANGES = Counter(
    "reconciliation_case_status_changes_total",
    "Case status transitions",
    ["new_status"],
)
CAPACITY_REJECTIONS = Counter(
    "reconciliation_mediator_capacity_rejections_total",
    "Mediator assignments refused because the mediator was at capacity",
)
SESSIONS_RECORDED = Counter(
    "reconciliation_sessions_recorded_total",
    "Mediation sessions recorded",
    ["session_type"],
)
