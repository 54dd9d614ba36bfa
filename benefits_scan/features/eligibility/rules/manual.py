"""
Manual rule: the benefit is managed by hand. Eligibility mirrors whether a
WMB record already exists, so the scan never creates or removes it.
"""

from benefits_scan.features.eligibility.domain import EligibilityResult
from benefits_scan.features.eligibility.periods import format_period

from .base import EligibilityContext, EligibilityPlugin, RuleConfig, RuleMetadata


class ManualRule(EligibilityPlugin):
    metadata = RuleMetadata(
        id="manual",
        name="Manual",
        description="Benefit is assigned manually; only existing records are considered eligible.",
    )
    config_model = RuleConfig

    async def evaluate(self, context: EligibilityContext, config: RuleConfig) -> EligibilityResult:
        if not context.benefit_id:
            return EligibilityResult(eligible=False, reason="Manual rule requires a benefit")

        period = format_period(context.as_of_month, context.as_of_year)
        exists = await context.storage.benefits.worker_benefit_exists(
            context.worker_id, context.benefit_id, context.as_of_month, context.as_of_year
        )

        if exists:
            return EligibilityResult(
                eligible=True,
                reason=f"Manually assigned benefit exists for {period}",
            )
        return EligibilityResult(
            eligible=False,
            reason=f"No manually assigned benefit for {period}",
        )
