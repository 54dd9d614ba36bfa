"""
Eligibility rule registry.

A ``RuleRegistry`` is built once at process start (see
``build_default_registry``) and handed to the executor, the scan engine and
the API layer. There is no module-level registry to mutate.
"""

from collections.abc import Iterable

from benefits_scan.features.eligibility.errors import DuplicateRuleError, UnknownRuleError
from benefits_scan.infrastructure.observability.logging import get_logger

from .base import EligibilityPlugin
from .hours_lookback import HoursLookbackRule
from .manual import ManualRule
from .work_status import WorkStatusRule

logger = get_logger(__name__)


class RuleRegistry:
    """Lookup from rule id to rule implementation."""

    def __init__(self, plugins: Iterable[EligibilityPlugin] = ()):
        self._plugins: dict[str, EligibilityPlugin] = {}
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: EligibilityPlugin) -> None:
        rule_id = plugin.metadata.id
        if rule_id in self._plugins:
            raise DuplicateRuleError(rule_id)
        self._plugins[rule_id] = plugin
        logger.debug("Eligibility rule registered", rule_id=rule_id)

    def get(self, rule_id: str) -> EligibilityPlugin | None:
        return self._plugins.get(rule_id)

    def require(self, rule_id: str) -> EligibilityPlugin:
        plugin = self._plugins.get(rule_id)
        if plugin is None:
            raise UnknownRuleError(rule_id)
        return plugin

    def all(self) -> list[EligibilityPlugin]:
        return sorted(self._plugins.values(), key=lambda p: p.metadata.id)

    def ids(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


def build_default_registry() -> RuleRegistry:
    """Registry holding every built-in rule type."""
    registry = RuleRegistry([HoursLookbackRule(), WorkStatusRule(), ManualRule()])
    logger.info("Eligibility rule registry built", rules=registry.ids())
    return registry
