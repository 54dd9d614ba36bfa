import asyncio
import itertools
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any

import pytest

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
from benefits_scan.features.eligibility.repository import BenefitsScanStorage
from benefits_scan.features.eligibility.rules import build_default_registry

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


class FakeWorkerStore:
    def __init__(self):
        self.workers: dict[str, Worker] = {}
        self.employers: dict[str, Employer] = {}
        self.hours: dict[tuple[str, int, int], float] = {}
        self.get_worker_calls = 0

    def add_worker(self, worker_id: str, employer_id: str | None = None, ws_id: str | None = None):
        worker = Worker(id=worker_id, denorm_home_employer_id=employer_id, denorm_ws_id=ws_id)
        self.workers[worker_id] = worker
        return worker

    def add_employer(self, employer_id: str, name: str | None = None, policy_id: str | None = None):
        employer = Employer(id=employer_id, name=name, denorm_policy_id=policy_id)
        self.employers[employer_id] = employer
        return employer

    def set_hours(self, worker_id: str, month: int, year: int, hours: float):
        self.hours[(worker_id, month, year)] = hours

    async def get_worker(self, worker_id: str) -> Worker | None:
        self.get_worker_calls += 1
        return self.workers.get(worker_id)

    async def get_employer(self, employer_id: str) -> Employer | None:
        return self.employers.get(employer_id)

    async def get_worker_monthly_hours_all_employers(
        self, worker_id: str, month: int, year: int
    ) -> float:
        return self.hours.get((worker_id, month, year), 0.0)


class FakeBenefitStore:
    def __init__(self):
        self.benefits: dict[str, Benefit] = {}
        self.records: dict[str, WorkerMonthlyBenefit] = {}
        self.fail_create_for: set[str] = set()

    def add_benefit(self, benefit_id: str, name: str | None = None) -> Benefit:
        benefit = Benefit(id=benefit_id, name=name or benefit_id)
        self.benefits[benefit_id] = benefit
        return benefit

    def add_record(
        self, worker_id: str, benefit_id: str, month: int, year: int, employer_id: str = "emp-1"
    ) -> WorkerMonthlyBenefit:
        record = WorkerMonthlyBenefit(
            id=_next_id("wmb"),
            worker_id=worker_id,
            benefit_id=benefit_id,
            month=month,
            year=year,
            employer_id=employer_id,
        )
        self.records[record.id] = record
        return record

    def records_for(self, worker_id: str, month: int, year: int) -> list[WorkerMonthlyBenefit]:
        return [
            r
            for r in self.records.values()
            if r.worker_id == worker_id and r.month == month and r.year == year
        ]

    async def get_all_benefits(self) -> list[Benefit]:
        return list(self.benefits.values())

    async def get_worker_benefits(self, worker_id: str) -> list[WorkerMonthlyBenefit]:
        return [r for r in self.records.values() if r.worker_id == worker_id]

    async def worker_benefit_exists(
        self, worker_id: str, benefit_id: str, month: int, year: int
    ) -> bool:
        return any(r.benefit_id == benefit_id for r in self.records_for(worker_id, month, year))

    async def create_worker_benefit(self, row: NewWorkerMonthlyBenefit) -> WorkerMonthlyBenefit:
        if row.benefit_id in self.fail_create_for:
            raise RuntimeError(f"insert failed for {row.benefit_id}")
        if await self.worker_benefit_exists(row.worker_id, row.benefit_id, row.month, row.year):
            raise RuntimeError("duplicate key value violates unique constraint")
        return self.add_record(row.worker_id, row.benefit_id, row.month, row.year, row.employer_id)

    async def delete_worker_benefit(self, wmb_id: str) -> bool:
        return self.records.pop(wmb_id, None) is not None


class FakePolicyStore:
    def __init__(self):
        self.policies: dict[str, Policy] = {}
        self.history: list[PolicyHistoryEntry] = []
        self.variables: dict[str, Any] = {}

    def add_policy(
        self,
        policy_id: str,
        benefit_rules: dict[str, list[dict]],
        name: str | None = None,
    ) -> Policy:
        policy = Policy(
            id=policy_id,
            name=name,
            data={"benefitIds": list(benefit_rules), "eligibilityRules": benefit_rules},
        )
        self.policies[policy_id] = policy
        return policy

    def add_history(
        self,
        employer_id: str,
        effective: date,
        policy_id: str,
        created_at: datetime | None = None,
    ) -> PolicyHistoryEntry:
        entry = PolicyHistoryEntry(
            id=_next_id("eph"),
            employer_id=employer_id,
            date=effective,
            policy_id=policy_id,
            policy=self.policies.get(policy_id),
            created_at=created_at,
        )
        self.history.append(entry)
        return entry

    async def get_policy_by_id(self, policy_id: str) -> Policy | None:
        return self.policies.get(policy_id)

    async def get_employer_policy_history(self, employer_id: str) -> list[PolicyHistoryEntry]:
        return [e for e in self.history if e.employer_id == employer_id]

    async def get_system_variable(self, name: str) -> Any:
        return self.variables.get(name)


class FakeScanQueueStore:
    """In-memory queue with the same state machine as the PostgreSQL repository."""

    def __init__(self, workers: FakeWorkerStore):
        self._workers = workers
        self._lock = asyncio.Lock()
        self.jobs: dict[str, ScanQueueJob] = {}
        self.statuses: dict[str, ScanMonthStatus] = {}
        self.claims: list[str] = []

    def _ensure_status(self, month: int, year: int) -> ScanMonthStatus:
        for status in self.statuses.values():
            if status.month == month and status.year == year:
                status.status = "queued"
                status.completed_at = None
                return status
        status = ScanMonthStatus(id=_next_id("status"), month=month, year=year, status="queued")
        self.statuses[status.id] = status
        return status

    def _find(self, worker_id: str, month: int, year: int) -> ScanQueueJob | None:
        for job in self.jobs.values():
            if job.worker_id == worker_id and job.month == month and job.year == year:
                return job
        return None

    def _reset(self, job: ScanQueueJob, status_id: str | None, trigger_source: str) -> None:
        job.status = "pending"
        job.status_id = status_id or job.status_id
        job.trigger_source = trigger_source
        job.attempts = 0
        job.last_error = None
        job.result_summary = None
        job.picked_at = None
        job.completed_at = None

    def _sync(self, status_id: str | None) -> None:
        status = self.statuses.get(status_id) if status_id else None
        if status is None:
            return
        jobs = [j for j in self.jobs.values() if j.status_id == status_id]
        status.processed_success = sum(1 for j in jobs if j.status == "success")
        status.processed_failed = sum(1 for j in jobs if j.status == "failed")
        open_jobs = sum(1 for j in jobs if j.status in ("pending", "processing"))
        if open_jobs == 0 and status.status in ("queued", "running"):
            status.status = "completed"
            status.completed_at = datetime.utcnow()
        elif open_jobs > 0:
            if status.status == "completed":
                status.status = "running"
            status.completed_at = None

    async def enqueue_month(self, month: int, year: int) -> EnqueueResult:
        status = self._ensure_status(month, year)
        queued = 0
        for worker_id in sorted(self._workers.workers):
            job = self._find(worker_id, month, year)
            if job is None:
                job = ScanQueueJob(
                    id=_next_id("job"),
                    status_id=status.id,
                    worker_id=worker_id,
                    month=month,
                    year=year,
                    status="pending",
                    trigger_source="monthly_batch",
                    created_at=datetime.utcnow(),
                )
                self.jobs[job.id] = job
                queued += 1
            elif job.status == "failed":
                self._reset(job, status.id, "monthly_batch")
                queued += 1
        status.total_queued += queued
        self._sync(status.id)
        return EnqueueResult(status_id=status.id, queued_count=queued)

    async def enqueue_worker(
        self, worker_id: str, month: int, year: int, trigger_source: str
    ) -> ScanQueueJob:
        status = self._ensure_status(month, year)
        job = self._find(worker_id, month, year)
        if job is None:
            job = ScanQueueJob(
                id=_next_id("job"),
                status_id=status.id,
                worker_id=worker_id,
                month=month,
                year=year,
                status="pending",
                trigger_source=trigger_source,
                created_at=datetime.utcnow(),
            )
            self.jobs[job.id] = job
            status.total_queued += 1
        elif job.status != "processing":
            self._reset(job, status.id, trigger_source)
            status.total_queued += 1
        self._sync(status.id)
        return replace(job)

    async def claim_next_job(self) -> ScanQueueJob | None:
        async with self._lock:
            pending = [j for j in self.jobs.values() if j.status == "pending"]
            # yield while holding the lock so concurrent claimers interleave
            await asyncio.sleep(0)
            if not pending:
                return None
            job = pending[0]
            job.status = "processing"
            job.picked_at = datetime.utcnow()
            status = self.statuses.get(job.status_id)
            if status and status.status in ("queued", "stale"):
                status.status = "running"
                status.started_at = status.started_at or datetime.utcnow()
            self.claims.append(job.id)
            return replace(job)

    async def record_job_result(
        self,
        job_id: str,
        success: bool,
        result_summary: dict[str, Any] | None,
        error: str | None = None,
    ) -> None:
        job = self.jobs.get(job_id)
        if job is None or job.status != "processing":
            return
        job.status = "success" if success else "failed"
        job.completed_at = datetime.utcnow()
        job.attempts += 1
        job.result_summary = result_summary
        job.last_error = error[:500] if error else None
        self._sync(job.status_id)

    async def get_pending_summary(self) -> list[QueueStatusCounts]:
        counts: dict[tuple[int, int], QueueStatusCounts] = {}
        for job in self.jobs.values():
            key = (job.year, job.month)
            entry = counts.setdefault(key, QueueStatusCounts(month=job.month, year=job.year))
            setattr(entry, job.status, getattr(entry, job.status) + 1)
        return [counts[key] for key in sorted(counts, reverse=True)]

    async def invalidate_worker_scans(self, worker_id: str, today: date | None = None) -> int:
        today = today or date.today()
        touched = []
        for job in self.jobs.values():
            if job.worker_id != worker_id or job.status == "processing":
                continue
            if (job.year, job.month) < (today.year, today.month):
                continue
            self._reset(job, None, "worker_update")
            touched.append(job)
        for status_id in {j.status_id for j in touched}:
            status = self.statuses.get(status_id)
            if status and status.status == "completed":
                status.status = "stale"
                status.completed_at = None
            self._sync(status_id)
        return len(touched)

    async def get_month_status(self, month: int, year: int) -> ScanMonthStatus | None:
        for status in self.statuses.values():
            if status.month == month and status.year == year:
                return replace(status)
        return None

    async def list_month_statuses(self) -> list[ScanMonthStatus]:
        return sorted(
            (replace(s) for s in self.statuses.values()),
            key=lambda s: (s.year, s.month),
            reverse=True,
        )

    async def list_month_jobs(self, status_id: str) -> list[ScanQueueJob]:
        return [replace(j) for j in self.jobs.values() if j.status_id == status_id]

    async def reclaim_stale_jobs(self, stale_after_seconds: int) -> int:
        cutoff = datetime.utcnow() - timedelta(seconds=stale_after_seconds)
        reclaimed = 0
        for job in self.jobs.values():
            if job.status == "processing" and job.picked_at and job.picked_at < cutoff:
                job.status = "pending"
                job.attempts += 1
                job.picked_at = None
                job.last_error = "Reclaimed after exceeding processing timeout"
                reclaimed += 1
        return reclaimed

    async def retry_failed_jobs(self, max_attempts: int, backoff_seconds: int) -> int:
        now = datetime.utcnow()
        retried = 0
        for job in self.jobs.values():
            if job.status != "failed" or job.attempts >= max_attempts or job.completed_at is None:
                continue
            wait = backoff_seconds * 2 ** max(job.attempts - 1, 0)
            if job.completed_at <= now - timedelta(seconds=wait):
                job.status = "pending"
                job.trigger_source = "retry"
                job.picked_at = None
                job.completed_at = None
                retried += 1
                self._sync(job.status_id)
        return retried


@pytest.fixture
def storage() -> BenefitsScanStorage:
    workers = FakeWorkerStore()
    return BenefitsScanStorage(
        queue=FakeScanQueueStore(workers),
        benefits=FakeBenefitStore(),
        policies=FakePolicyStore(),
        workers=workers,
    )


@pytest.fixture
def registry():
    return build_default_registry()


def _hours_rule(applies_to=("start", "continue"), months_prior: int = 1) -> dict:
    return {
        "ruleId": "hours-lookback",
        "appliesTo": list(applies_to),
        "config": {"appliesTo": list(applies_to), "monthsPrior": months_prior},
    }


def _work_status_rule(allowed: list[str], applies_to=("start", "continue")) -> dict:
    return {
        "ruleId": "work-status",
        "appliesTo": list(applies_to),
        "config": {"appliesTo": list(applies_to), "allowedStatusIds": allowed},
    }


@pytest.fixture
def hours_rule():
    return _hours_rule


@pytest.fixture
def work_status_rule():
    return _work_status_rule
