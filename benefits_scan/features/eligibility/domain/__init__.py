"""
Domain subpackage for the eligibility feature.
"""

from .models import (
    JOB_STATUSES,
    SCAN_TYPES,
    BatchResult,
    Benefit,
    BenefitEligibilityResult,
    BenefitScanAction,
    BenefitsScanResult,
    EligibilityResult,
    Employer,
    EnqueueResult,
    NewWorkerMonthlyBenefit,
    Policy,
    JobStatus,
    PolicyHistoryEntry,
    QueueStatusCounts,
    RuleResult,
    ScanAction,
    ScanMode,
    ScanMonthStatus,
    ScanQueueJob,
    ScanSummary,
    ScanType,
    Worker,
    WorkerMonthlyBenefit,
)

__all__ = [
    "JOB_STATUSES",
    "SCAN_TYPES",
    "BatchResult",
    "Benefit",
    "BenefitEligibilityResult",
    "BenefitScanAction",
    "BenefitsScanResult",
    "EligibilityResult",
    "Employer",
    "EnqueueResult",
    "NewWorkerMonthlyBenefit",
    "Policy",
    "JobStatus",
    "PolicyHistoryEntry",
    "QueueStatusCounts",
    "RuleResult",
    "ScanAction",
    "ScanMode",
    "ScanMonthStatus",
    "ScanQueueJob",
    "ScanSummary",
    "ScanType",
    "Worker",
    "WorkerMonthlyBenefit",
]
