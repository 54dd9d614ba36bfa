"""
Domain models for the eligibility / WMB scan feature.

Plain dataclasses describing rows read from storage and the values the
executor and reconciliation engine produce. Business logic lives in the
services package.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Literal

ScanType = Literal["start", "continue"]
ScanMode = Literal["test", "live"]
ScanAction = Literal["create", "delete", "none"]
JobStatus = Literal["pending", "processing", "success", "failed"]

SCAN_TYPES: tuple[str, ...] = ("start", "continue")
JOB_STATUSES: tuple[str, ...] = ("pending", "processing", "success", "failed")


@dataclass(slots=True)
class Benefit:
    """A trust benefit that can be granted to a worker for a month."""

    id: str
    name: str
    benefit_type: str | None = None
    is_active: bool = True


@dataclass(slots=True)
class Policy:
    """A named bundle of benefits and per-benefit eligibility rules."""

    id: str
    name: str | None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def benefit_ids(self) -> list[str]:
        return list(self.data.get("benefitIds") or [])

    def rules_for(self, benefit_id: str) -> list[dict[str, Any]]:
        """Raw rule dicts configured for one benefit."""
        rules = self.data.get("eligibilityRules") or {}
        return list(rules.get(benefit_id) or [])


@dataclass(slots=True)
class PolicyHistoryEntry:
    """Effective-dated policy assignment for an employer."""

    id: str
    employer_id: str
    date: date
    policy_id: str
    policy: Policy | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Employer:
    id: str
    name: str | None = None
    denorm_policy_id: str | None = None


@dataclass(slots=True)
class Worker:
    """Subject of evaluation with its denormalized employer/work-status refs."""

    id: str
    denorm_home_employer_id: str | None = None
    denorm_ws_id: str | None = None


@dataclass(slots=True)
class WorkerMonthlyBenefit:
    """Represents a trust_wmb row."""

    id: str
    worker_id: str
    benefit_id: str
    month: int
    year: int
    employer_id: str


@dataclass(slots=True)
class NewWorkerMonthlyBenefit:
    """Insert payload for a trust_wmb row."""

    worker_id: str
    benefit_id: str
    month: int
    year: int
    employer_id: str


@dataclass(slots=True)
class EligibilityResult:
    """Verdict of a single rule evaluation."""

    eligible: bool
    reason: str | None = None


@dataclass(slots=True)
class RuleResult:
    """Audit entry for one evaluated rule."""

    rule_id: str
    eligible: bool
    reason: str | None = None


@dataclass(slots=True)
class BenefitEligibilityResult:
    """Folded verdict of every applicable rule for one benefit."""

    benefit_id: str
    eligible: bool
    results: list[RuleResult] = field(default_factory=list)
    reason: str | None = None


@dataclass(slots=True)
class BenefitScanAction:
    """Reconciliation decision (and live execution outcome) for one benefit."""

    benefit_id: str
    benefit_name: str
    scan_type: ScanType
    eligible: bool
    action: ScanAction
    action_reason: str
    rule_results: list[RuleResult] = field(default_factory=list)
    evaluation_error: str | None = None
    executed: bool | None = None
    execution_error: str | None = None


@dataclass(slots=True)
class ScanSummary:
    total_evaluated: int = 0
    eligible: int = 0
    ineligible: int = 0
    created: int = 0
    deleted: int = 0
    unchanged: int = 0
    errors: int = 0


@dataclass(slots=True)
class BenefitsScanResult:
    """Full outcome of reconciling one worker for one month."""

    worker_id: str
    month: int
    year: int
    mode: ScanMode
    policy_id: str
    policy_name: str
    policy_source: str
    employer_id: str | None
    employer_name: str | None
    previous_month_benefit_ids: list[str]
    actions: list[BenefitScanAction]
    summary: ScanSummary

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ScanQueueJob:
    """Represents a trust_wmb_scan_queue row."""

    id: str
    status_id: str | None
    worker_id: str
    month: int
    year: int
    status: JobStatus
    attempts: int = 0
    trigger_source: str | None = None
    result_summary: dict[str, Any] | None = None
    last_error: str | None = None
    picked_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class ScanMonthStatus:
    """Represents a trust_wmb_scan_status row (one per enqueued month)."""

    id: str
    month: int
    year: int
    status: str
    total_queued: int = 0
    processed_success: int = 0
    processed_failed: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class QueueStatusCounts:
    """Per-month job counts by status."""

    month: int
    year: int
    pending: int = 0
    processing: int = 0
    success: int = 0
    failed: int = 0


@dataclass(slots=True)
class EnqueueResult:
    status_id: str
    queued_count: int


@dataclass(slots=True)
class BatchResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
