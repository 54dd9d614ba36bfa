"""
Exception types for the eligibility feature.
"""


class BenefitsScanError(Exception):
    """Base exception for eligibility evaluation and reconciliation."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class WorkerNotFoundError(BenefitsScanError):
    def __init__(self, worker_id: str):
        super().__init__(f"Worker not found: {worker_id}", operation="load_worker", recoverable=False)
        self.worker_id = worker_id


class PolicyNotFoundError(BenefitsScanError):
    def __init__(self, worker_id: str):
        super().__init__(
            "No policy found for worker", operation="resolve_policy", recoverable=False
        )
        self.worker_id = worker_id


class RuleEvaluationError(BenefitsScanError):
    """A rule raised while evaluating; carries the rule id that failed."""

    def __init__(self, rule_id: str, cause: Exception):
        super().__init__(
            f"Eligibility rule '{rule_id}' failed: {cause}", operation="evaluate_rule"
        )
        self.rule_id = rule_id


class RuleRegistryError(Exception):
    """Configuration problem with the eligibility rule registry."""


class DuplicateRuleError(RuleRegistryError):
    def __init__(self, rule_id: str):
        super().__init__(f"Eligibility rule already registered: {rule_id}")
        self.rule_id = rule_id


class UnknownRuleError(RuleRegistryError):
    def __init__(self, rule_id: str):
        super().__init__(f"Unknown eligibility rule: {rule_id}")
        self.rule_id = rule_id
