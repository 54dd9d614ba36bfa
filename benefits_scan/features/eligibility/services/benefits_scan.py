"""
Benefits scan (WMB reconciliation) for one worker and month.

For every benefit the worker's policy offers, the scan picks the scan type
from last month's records ("continue" if the worker held the benefit, "start"
otherwise), evaluates the configured rules and compares the verdict with the
current month's records:

    eligible   + record    -> none
    eligible   + no record -> create
    ineligible + record    -> delete
    ineligible + no record -> none

Test mode only reports. Live mode executes each action on its own so one
failed write does not stop the rest.
"""

from benefits_scan.features.eligibility.domain import (
    BenefitScanAction,
    BenefitsScanResult,
    NewWorkerMonthlyBenefit,
    ScanAction,
    ScanMode,
    ScanSummary,
    ScanType,
    WorkerMonthlyBenefit,
)
from benefits_scan.features.eligibility.errors import (
    PolicyNotFoundError,
    RuleEvaluationError,
    WorkerNotFoundError,
)
from benefits_scan.features.eligibility.periods import previous_month
from benefits_scan.features.eligibility.repository import BenefitsScanStorage
from benefits_scan.features.eligibility.rules import RuleRegistry
from benefits_scan.infrastructure.observability.logging import get_logger

from .executor import RuleExecutor, WorkerLoader
from .policy_resolver import resolve_worker_policy

logger = get_logger(__name__)


def decide_action(scan_type: ScanType, eligible: bool, has_record: bool) -> tuple[ScanAction, str]:
    if eligible:
        if has_record:
            return "none", "Already has benefit for this month"
        return "create", f"Passed {scan_type} eligibility scan"
    if has_record:
        return "delete", f"Failed {scan_type} eligibility scan - removing existing record"
    return "none", f"Failed {scan_type} eligibility scan - no record to remove"


def summarize(actions: list[BenefitScanAction], mode: ScanMode) -> ScanSummary:
    def counted(action: BenefitScanAction) -> bool:
        return mode == "test" or bool(action.executed)

    return ScanSummary(
        total_evaluated=len(actions),
        eligible=sum(1 for a in actions if a.eligible),
        ineligible=sum(1 for a in actions if not a.eligible),
        created=sum(1 for a in actions if a.action == "create" and counted(a)),
        deleted=sum(1 for a in actions if a.action == "delete" and counted(a)),
        unchanged=sum(1 for a in actions if a.action == "none"),
        errors=sum(1 for a in actions if a.evaluation_error or a.execution_error),
    )


async def run_benefits_scan(
    storage: BenefitsScanStorage,
    registry: RuleRegistry,
    worker_id: str,
    month: int,
    year: int,
    mode: ScanMode,
) -> BenefitsScanResult:
    """
    Reconcile one worker's monthly benefit records for ``month``/``year``.

    Raises:
        WorkerNotFoundError: Worker does not exist
        PolicyNotFoundError: No policy resolves for the worker
    """
    logger.info(
        "Starting benefits scan", worker_id=worker_id, month=month, year=year, mode=mode
    )

    worker = await storage.workers.get_worker(worker_id)
    if worker is None:
        raise WorkerNotFoundError(worker_id)

    resolved = await resolve_worker_policy(storage, worker, month, year)
    policy = resolved.policy
    if policy is None:
        raise PolicyNotFoundError(worker_id)

    catalogue = {benefit.id: benefit for benefit in await storage.benefits.get_all_benefits()}
    records = await storage.benefits.get_worker_benefits(worker_id)

    prev_month, prev_year = previous_month(month, year)
    previous_ids = [
        r.benefit_id for r in records if r.month == prev_month and r.year == prev_year
    ]
    current: dict[str, WorkerMonthlyBenefit] = {
        r.benefit_id: r for r in records if r.month == month and r.year == year
    }

    executor = RuleExecutor(registry, storage)
    loader = WorkerLoader(storage.workers, worker_id, worker)
    actions: list[BenefitScanAction] = []

    for benefit_id in policy.benefit_ids:
        benefit = catalogue.get(benefit_id)
        if benefit is None:
            logger.warning("Benefit not found", benefit_id=benefit_id, policy_id=policy.id)
            continue

        scan_type: ScanType = "continue" if benefit_id in previous_ids else "start"

        try:
            evaluation = await executor.evaluate_benefit(
                benefit_id,
                policy.rules_for(benefit_id),
                scan_type=scan_type,
                worker_id=worker_id,
                as_of_month=month,
                as_of_year=year,
                worker_loader=loader,
                stop_after_ineligible=False,
            )
        except RuleEvaluationError as e:
            # A rule that raises or cannot be parsed never removes a record
            actions.append(
                BenefitScanAction(
                    benefit_id=benefit_id,
                    benefit_name=benefit.name or benefit_id,
                    scan_type=scan_type,
                    eligible=False,
                    action="none",
                    action_reason=f"Eligibility evaluation failed for rule {e.rule_id}",
                    evaluation_error=str(e),
                )
            )
            continue

        action, reason = decide_action(scan_type, evaluation.eligible, benefit_id in current)
        actions.append(
            BenefitScanAction(
                benefit_id=benefit_id,
                benefit_name=benefit.name or benefit_id,
                scan_type=scan_type,
                eligible=evaluation.eligible,
                action=action,
                action_reason=reason,
                rule_results=evaluation.results,
            )
        )

    if mode == "live":
        employer_id = (
            resolved.employer.id if resolved.employer else worker.denorm_home_employer_id
        )
        for action in actions:
            await _execute_action(storage, action, worker_id, month, year, employer_id, current)

    summary = summarize(actions, mode)
    logger.info(
        "Benefits scan completed",
        worker_id=worker_id,
        month=month,
        year=year,
        mode=mode,
        policy_id=policy.id,
        created=summary.created,
        deleted=summary.deleted,
        errors=summary.errors,
    )

    return BenefitsScanResult(
        worker_id=worker_id,
        month=month,
        year=year,
        mode=mode,
        policy_id=policy.id,
        policy_name=policy.display_name,
        policy_source=resolved.source,
        employer_id=resolved.employer.id if resolved.employer else None,
        employer_name=resolved.employer.name if resolved.employer else None,
        previous_month_benefit_ids=previous_ids,
        actions=actions,
        summary=summary,
    )


async def _execute_action(
    storage: BenefitsScanStorage,
    action: BenefitScanAction,
    worker_id: str,
    month: int,
    year: int,
    employer_id: str | None,
    current: dict[str, WorkerMonthlyBenefit],
) -> None:
    if action.action == "create" and not employer_id:
        action.executed = False
        action.execution_error = "No employer to attribute the benefit to"
        logger.warning(
            "Skipping benefit create without employer",
            worker_id=worker_id,
            benefit_id=action.benefit_id,
        )
        return

    try:
        if action.action == "create":
            await storage.benefits.create_worker_benefit(
                NewWorkerMonthlyBenefit(
                    worker_id=worker_id,
                    benefit_id=action.benefit_id,
                    month=month,
                    year=year,
                    employer_id=employer_id,
                )
            )
            action.executed = True
        elif action.action == "delete":
            existing = current.get(action.benefit_id)
            if existing:
                await storage.benefits.delete_worker_benefit(existing.id)
                action.executed = True
    except Exception as e:
        action.executed = False
        action.execution_error = str(e)
        logger.error(
            "Failed to execute benefit action",
            worker_id=worker_id,
            benefit_id=action.benefit_id,
            action=action.action,
            error=str(e),
            error_type=type(e).__name__,
        )
