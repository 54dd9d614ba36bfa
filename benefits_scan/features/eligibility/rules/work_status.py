"""
Work-status rule: eligible when the worker's current work status is allowed.
"""

from pydantic import AliasChoices, Field

from benefits_scan.features.eligibility.domain import EligibilityResult

from .base import EligibilityContext, EligibilityPlugin, RuleConfig, RuleMetadata


class WorkStatusConfig(RuleConfig):
    allowed_status_ids: list[str] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("allowedStatusIds", "allowed_status_ids"),
    )


class WorkStatusRule(EligibilityPlugin):
    metadata = RuleMetadata(
        id="work-status",
        name="Work Status",
        description="Worker's current work status must be one of the configured statuses.",
    )
    config_model = WorkStatusConfig

    async def evaluate(
        self, context: EligibilityContext, config: WorkStatusConfig
    ) -> EligibilityResult:
        worker = await context.get_worker()

        if not worker.denorm_ws_id:
            return EligibilityResult(eligible=False, reason="Worker has no work status set")

        if worker.denorm_ws_id in config.allowed_status_ids:
            return EligibilityResult(
                eligible=True,
                reason=f"Work status {worker.denorm_ws_id} is allowed",
            )
        return EligibilityResult(
            eligible=False,
            reason=f"Work status {worker.denorm_ws_id} is not in the allowed list",
        )
