"""
Eligibility rule contract.

A rule type is a stateless object with metadata, a pydantic config model and
an async ``evaluate``. Rules only read through the storage collaborator on the
evaluation context and never write.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from benefits_scan.features.eligibility.domain import EligibilityResult, ScanType, Worker

if TYPE_CHECKING:
    from benefits_scan.features.eligibility.repository import BenefitsScanStorage


class RuleConfig(BaseModel):
    """Base for rule-specific config models. Accepts camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AppliesToConfig(BaseModel):
    """Shared part of every rule config: which scan types the rule runs for."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    applies_to: list[Literal["start", "continue"]] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("appliesTo", "applies_to"),
    )


class EligibilityRule(BaseModel):
    """One configured rule inside a policy's per-benefit rule list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rule_id: str = Field(validation_alias=AliasChoices("ruleId", "pluginKey", "rule_id"))
    applies_to: list[Literal["start", "continue"]] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("appliesTo", "applies_to"),
    )
    config: dict[str, Any] = Field(default_factory=dict)


@dataclass(slots=True)
class RuleMetadata:
    id: str
    name: str
    description: str


@dataclass(slots=True)
class ConfigValidationResult:
    valid: bool
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class EligibilityContext:
    """Everything a rule may look at for one worker/benefit/period."""

    scan_type: ScanType
    worker_id: str
    get_worker: Callable[[], Awaitable[Worker]]
    as_of_month: int
    as_of_year: int
    storage: "BenefitsScanStorage"
    benefit_id: str | None = None


def _validation_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "config",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


class EligibilityPlugin(ABC):
    """Contract every eligibility rule type implements."""

    metadata: ClassVar[RuleMetadata]
    config_model: ClassVar[type[RuleConfig]] = RuleConfig

    @abstractmethod
    async def evaluate(self, context: EligibilityContext, config: RuleConfig) -> EligibilityResult:
        """Return the verdict for the worker described by ``context``."""

    def parse_config(self, raw: dict[str, Any] | None) -> RuleConfig:
        return self.config_model.model_validate(raw or {})

    def validate_config(self, raw: Any) -> ConfigValidationResult:
        """Check the shared applies-to section and the rule-specific fields."""
        if not isinstance(raw, dict):
            return ConfigValidationResult(
                valid=False,
                errors=[{"field": "config", "message": "Config must be an object"}],
            )

        errors: list[dict[str, str]] = []
        for model in (AppliesToConfig, self.config_model):
            try:
                model.model_validate(raw)
            except ValidationError as exc:
                errors.extend(_validation_errors(exc))

        return ConfigValidationResult(valid=not errors, errors=errors)
