"""
Storage collaborator contract for the eligibility feature.

The rule plugins, executor, policy resolver, reconciliation engine and scan
queue only talk to storage through these protocols. The PostgreSQL
repositories in this package implement them; tests supply an in-memory
implementation.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from benefits_scan.features.eligibility.domain import (
    Benefit,
    Employer,
    EnqueueResult,
    NewWorkerMonthlyBenefit,
    Policy,
    PolicyHistoryEntry,
    QueueStatusCounts,
    ScanMonthStatus,
    ScanQueueJob,
    Worker,
    WorkerMonthlyBenefit,
)


class ScanQueueStore(Protocol):
    async def enqueue_month(self, month: int, year: int) -> EnqueueResult: ...

    async def enqueue_worker(
        self, worker_id: str, month: int, year: int, trigger_source: str
    ) -> ScanQueueJob: ...

    async def claim_next_job(self) -> ScanQueueJob | None: ...

    async def record_job_result(
        self,
        job_id: str,
        success: bool,
        result_summary: dict[str, Any] | None,
        error: str | None = None,
    ) -> None: ...

    async def get_pending_summary(self) -> list[QueueStatusCounts]: ...

    async def invalidate_worker_scans(self, worker_id: str) -> int: ...

    async def get_month_status(self, month: int, year: int) -> ScanMonthStatus | None: ...

    async def list_month_statuses(self) -> list[ScanMonthStatus]: ...

    async def list_month_jobs(self, status_id: str) -> list[ScanQueueJob]: ...

    async def reclaim_stale_jobs(self, stale_after_seconds: int) -> int: ...

    async def retry_failed_jobs(self, max_attempts: int, backoff_seconds: int) -> int: ...


class BenefitStore(Protocol):
    async def get_all_benefits(self) -> list[Benefit]: ...

    async def get_worker_benefits(self, worker_id: str) -> list[WorkerMonthlyBenefit]: ...

    async def worker_benefit_exists(
        self, worker_id: str, benefit_id: str, month: int, year: int
    ) -> bool: ...

    async def create_worker_benefit(self, row: NewWorkerMonthlyBenefit) -> WorkerMonthlyBenefit: ...

    async def delete_worker_benefit(self, wmb_id: str) -> bool: ...


class PolicyStore(Protocol):
    async def get_policy_by_id(self, policy_id: str) -> Policy | None: ...

    async def get_employer_policy_history(self, employer_id: str) -> list[PolicyHistoryEntry]: ...

    async def get_system_variable(self, name: str) -> Any: ...


class WorkerStore(Protocol):
    async def get_worker(self, worker_id: str) -> Worker | None: ...

    async def get_employer(self, employer_id: str) -> Employer | None: ...

    async def get_worker_monthly_hours_all_employers(
        self, worker_id: str, month: int, year: int
    ) -> float: ...


@dataclass(slots=True)
class BenefitsScanStorage:
    """Bundle of the repositories the scan engine depends on."""

    queue: ScanQueueStore
    benefits: BenefitStore
    policies: PolicyStore
    workers: WorkerStore


def build_postgres_storage() -> BenefitsScanStorage:
    """Storage bundle backed by the shared psycopg pool."""
    from .benefit_repository import BenefitRepository
    from .policy_repository import PolicyRepository
    from .scan_queue_repository import ScanQueueRepository
    from .worker_repository import WorkerRepository

    return BenefitsScanStorage(
        queue=ScanQueueRepository(),
        benefits=BenefitRepository(),
        policies=PolicyRepository(),
        workers=WorkerRepository(),
    )
