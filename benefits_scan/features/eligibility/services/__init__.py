from .benefits_scan import decide_action, run_benefits_scan, summarize
from .executor import RuleExecutor, WorkerLoader, coerce_rules
from .policy_resolver import ResolvedPolicy, effective_history_entry, resolve_worker_policy
from .scan_queue import (
    enqueue_month_scan,
    get_queue_status,
    invalidate_worker_scans,
    process_batch_queue_jobs,
)

__all__ = [
    "ResolvedPolicy",
    "RuleExecutor",
    "WorkerLoader",
    "coerce_rules",
    "decide_action",
    "effective_history_entry",
    "enqueue_month_scan",
    "get_queue_status",
    "invalidate_worker_scans",
    "process_batch_queue_jobs",
    "resolve_worker_policy",
    "run_benefits_scan",
    "summarize",
]
