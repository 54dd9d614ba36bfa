"""
Rule executor.

Runs a benefit's configured rules for one scan type, in order, and folds the
verdicts into a single eligibility answer (logical AND) while keeping every
individual rule result for audit.
"""

from collections.abc import Iterable
from datetime import date
from typing import Any

from pydantic import ValidationError

from benefits_scan.features.eligibility.domain import (
    BenefitEligibilityResult,
    RuleResult,
    ScanType,
    Worker,
)
from benefits_scan.features.eligibility.errors import RuleEvaluationError, WorkerNotFoundError
from benefits_scan.features.eligibility.repository import BenefitsScanStorage, WorkerStore
from benefits_scan.features.eligibility.rules import (
    EligibilityContext,
    EligibilityRule,
    RuleRegistry,
)
from benefits_scan.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class WorkerLoader:
    """
    Lazily loads one worker snapshot and caches it for the lifetime of a scan.

    The cache is populated on the first call or seeded with a worker the
    caller already holds. A new loader is created per scan so snapshots never
    outlive the evaluation that read them.
    """

    def __init__(self, workers: WorkerStore, worker_id: str, worker: Worker | None = None):
        self._workers = workers
        self._worker_id = worker_id
        self._worker = worker

    async def __call__(self) -> Worker:
        if self._worker is None:
            worker = await self._workers.get_worker(self._worker_id)
            if worker is None:
                raise WorkerNotFoundError(self._worker_id)
            self._worker = worker
        return self._worker


def _stored_rule_id(raw: Any) -> str:
    if isinstance(raw, dict):
        for key in ("ruleId", "pluginKey", "rule_id"):
            if raw.get(key):
                return str(raw[key])
    return "<unnamed>"


def coerce_rules(raw_rules: Iterable[EligibilityRule | dict[str, Any]]) -> list[EligibilityRule]:
    """
    Parse stored rule dicts.

    Raises:
        RuleEvaluationError: An entry is not a valid rule. A benefit whose rule
            list cannot be read is never treated as having no rules.
    """
    rules: list[EligibilityRule] = []
    for raw in raw_rules:
        if isinstance(raw, EligibilityRule):
            rules.append(raw)
            continue
        try:
            rules.append(EligibilityRule.model_validate(raw))
        except ValidationError as e:
            rule_id = _stored_rule_id(raw)
            logger.error("Malformed eligibility rule", rule_id=rule_id, rule=raw, error=str(e))
            raise RuleEvaluationError(rule_id, e) from e
    return rules


class RuleExecutor:
    """Evaluates configured eligibility rules against the rule registry."""

    def __init__(self, registry: RuleRegistry, storage: BenefitsScanStorage):
        self.registry = registry
        self.storage = storage

    async def evaluate_benefit(
        self,
        benefit_id: str,
        rules: Iterable[EligibilityRule | dict[str, Any]],
        *,
        scan_type: ScanType,
        worker_id: str,
        as_of_month: int | None = None,
        as_of_year: int | None = None,
        worker_loader: WorkerLoader | None = None,
        stop_after_ineligible: bool = True,
    ) -> BenefitEligibilityResult:
        """
        Evaluate every rule that applies to ``scan_type`` for one benefit.

        Args:
            benefit_id: Benefit being evaluated
            rules: Ordered rule configuration for the benefit
            scan_type: "start" or "continue"
            worker_id: Worker being evaluated
            as_of_month / as_of_year: Scan period (defaults to the current month)
            worker_loader: Shared per-scan worker cache
            stop_after_ineligible: Stop at the first ineligible rule instead of
                recording every rule's verdict

        Raises:
            RuleEvaluationError: A rule raised while evaluating, or a configured
                rule could not be parsed
        """
        today = date.today()
        month = as_of_month or today.month
        year = as_of_year or today.year
        loader = worker_loader or WorkerLoader(self.storage.workers, worker_id)

        applicable = [rule for rule in coerce_rules(rules) if scan_type in rule.applies_to]
        if not applicable:
            return BenefitEligibilityResult(
                benefit_id=benefit_id,
                eligible=False,
                results=[],
                reason=f"No eligibility rules apply to {scan_type} scans",
            )

        context = EligibilityContext(
            scan_type=scan_type,
            worker_id=worker_id,
            get_worker=loader,
            as_of_month=month,
            as_of_year=year,
            storage=self.storage,
            benefit_id=benefit_id,
        )

        results: list[RuleResult] = []
        eligible = True

        for rule in applicable:
            plugin = self.registry.get(rule.rule_id)
            if plugin is None:
                logger.warning("Eligibility rule not registered", rule_id=rule.rule_id)
                results.append(
                    RuleResult(
                        rule_id=rule.rule_id,
                        eligible=False,
                        reason=f"Unknown eligibility rule: {rule.rule_id}",
                    )
                )
                eligible = False
                if stop_after_ineligible:
                    break
                continue

            try:
                config = plugin.parse_config(rule.config)
                verdict = await plugin.evaluate(context, config)
            except WorkerNotFoundError:
                raise
            except Exception as e:
                logger.error(
                    "Eligibility rule raised",
                    rule_id=rule.rule_id,
                    benefit_id=benefit_id,
                    worker_id=worker_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise RuleEvaluationError(rule.rule_id, e) from e

            results.append(
                RuleResult(rule_id=rule.rule_id, eligible=verdict.eligible, reason=verdict.reason)
            )
            if not verdict.eligible:
                eligible = False
                if stop_after_ineligible:
                    break

        return BenefitEligibilityResult(benefit_id=benefit_id, eligible=eligible, results=results)
