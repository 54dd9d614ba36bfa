"""
Policy resolution for a worker and month.

Order of precedence:
    1. Home employer's policy history entry effective on the first day of the month
    2. Home employer's current policy
    3. System default policy variable
"""

from dataclasses import dataclass

from benefits_scan.config import settings
from benefits_scan.features.eligibility.domain import Employer, Policy, PolicyHistoryEntry, Worker
from benefits_scan.features.eligibility.periods import first_day
from benefits_scan.features.eligibility.repository import BenefitsScanStorage
from benefits_scan.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NO_POLICY_SOURCE = "None"
DEFAULT_POLICY_SOURCE = "System default policy"


@dataclass(slots=True)
class ResolvedPolicy:
    policy: Policy | None
    source: str
    employer: Employer | None


def _employer_label(employer: Employer) -> str:
    return employer.name or employer.id


def effective_history_entry(
    history: list[PolicyHistoryEntry], month: int, year: int
) -> PolicyHistoryEntry | None:
    """Latest entry dated on or before the first of the month; newest row wins ties."""
    target = first_day(month, year)
    candidates = [entry for entry in history if entry.date <= target]
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda entry: (entry.date, entry.created_at.timestamp() if entry.created_at else 0.0),
    )


async def resolve_worker_policy(
    storage: BenefitsScanStorage,
    worker: Worker,
    month: int,
    year: int,
    default_variable: str | None = None,
) -> ResolvedPolicy:
    employer: Employer | None = None

    if worker.denorm_home_employer_id:
        employer = await storage.workers.get_employer(worker.denorm_home_employer_id)

    if employer:
        history = await storage.policies.get_employer_policy_history(employer.id)
        entry = effective_history_entry(history, month, year)
        if entry:
            policy = entry.policy or await storage.policies.get_policy_by_id(entry.policy_id)
            if policy:
                return ResolvedPolicy(
                    policy=policy,
                    source=f"Employer policy history ({_employer_label(employer)})",
                    employer=employer,
                )
            logger.warning(
                "Policy history entry references missing policy",
                employer_id=employer.id,
                policy_id=entry.policy_id,
            )

        if employer.denorm_policy_id:
            policy = await storage.policies.get_policy_by_id(employer.denorm_policy_id)
            if policy:
                return ResolvedPolicy(
                    policy=policy,
                    source=f"Employer current policy ({_employer_label(employer)})",
                    employer=employer,
                )

    variable = default_variable or settings.DEFAULT_POLICY_VARIABLE
    default_policy_id = await storage.policies.get_system_variable(variable)
    if default_policy_id:
        policy = await storage.policies.get_policy_by_id(str(default_policy_id))
        if policy:
            return ResolvedPolicy(policy=policy, source=DEFAULT_POLICY_SOURCE, employer=employer)

    return ResolvedPolicy(policy=None, source=NO_POLICY_SOURCE, employer=employer)
