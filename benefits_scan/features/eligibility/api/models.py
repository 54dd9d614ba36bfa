"""
Request models for the eligibility / WMB scan admin API.
"""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MonthRequest(_Request):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class ProcessBatchRequest(_Request):
    batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        validation_alias=AliasChoices("batchSize", "batch_size"),
    )


class BenefitsScanRequest(MonthRequest):
    mode: Literal["test", "live"] = "test"


class EvaluateRequest(_Request):
    worker_id: str = Field(..., validation_alias=AliasChoices("workerId", "worker_id"))
    benefit_id: str = Field(..., validation_alias=AliasChoices("benefitId", "benefit_id"))
    scan_type: Literal["start", "continue"] = Field(
        ..., validation_alias=AliasChoices("scanType", "scan_type")
    )
    rules: list[dict[str, Any]] = Field(default_factory=list)
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = Field(default=None, ge=2000, le=2100)
    stop_after_ineligible: bool = Field(
        default=True,
        validation_alias=AliasChoices("stopAfterIneligible", "stop_after_ineligible"),
    )


class ValidateConfigRequest(_Request):
    rule_id: str = Field(..., validation_alias=AliasChoices("ruleId", "pluginKey", "rule_id"))
    config: Any = None
