"""
Hours-lookback rule: eligible when the worker logged any hours, across all
employers, in the month N months before the scan month.
"""

from pydantic import AliasChoices, Field

from benefits_scan.features.eligibility.domain import EligibilityResult
from benefits_scan.features.eligibility.periods import format_period, shift_month

from .base import EligibilityContext, EligibilityPlugin, RuleConfig, RuleMetadata

DEFAULT_MONTHS_PRIOR = 4


class HoursLookbackConfig(RuleConfig):
    months_prior: int = Field(
        DEFAULT_MONTHS_PRIOR,
        ge=0,
        le=36,
        validation_alias=AliasChoices("monthsPrior", "months_prior"),
    )


class HoursLookbackRule(EligibilityPlugin):
    metadata = RuleMetadata(
        id="hours-lookback",
        name="Hours Lookback",
        description="Worker must have hours recorded in the month N months before the scan month.",
    )
    config_model = HoursLookbackConfig

    async def evaluate(
        self, context: EligibilityContext, config: HoursLookbackConfig
    ) -> EligibilityResult:
        month, year = shift_month(context.as_of_month, context.as_of_year, -config.months_prior)
        period = format_period(month, year)

        hours = await context.storage.workers.get_worker_monthly_hours_all_employers(
            context.worker_id, month, year
        )

        if hours > 0:
            return EligibilityResult(
                eligible=True,
                reason=f"Worker has {hours:g} hours in {period}",
            )
        return EligibilityResult(
            eligible=False,
            reason=f"Worker has no hours in {period} ({config.months_prior} months prior)",
        )
