"""
Eligibility rule types and the registry that maps rule ids to them.
"""

from .base import (
    AppliesToConfig,
    ConfigValidationResult,
    EligibilityContext,
    EligibilityPlugin,
    EligibilityRule,
    RuleConfig,
    RuleMetadata,
)
from .hours_lookback import HoursLookbackConfig, HoursLookbackRule
from .manual import ManualRule
from .registry import RuleRegistry, build_default_registry
from .work_status import WorkStatusConfig, WorkStatusRule

__all__ = [
    "AppliesToConfig",
    "ConfigValidationResult",
    "EligibilityContext",
    "EligibilityPlugin",
    "EligibilityRule",
    "HoursLookbackConfig",
    "HoursLookbackRule",
    "ManualRule",
    "RuleConfig",
    "RuleMetadata",
    "RuleRegistry",
    "WorkStatusConfig",
    "WorkStatusRule",
    "build_default_registry",
]
