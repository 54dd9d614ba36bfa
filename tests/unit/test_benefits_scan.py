import pytest

from benefits_scan.features.eligibility.domain import EligibilityResult
from benefits_scan.features.eligibility.errors import PolicyNotFoundError, WorkerNotFoundError
from benefits_scan.features.eligibility.rules import (
    EligibilityPlugin,
    RuleMetadata,
    RuleRegistry,
)
from benefits_scan.features.eligibility.services import decide_action, run_benefits_scan

MANUAL_RULE = {"ruleId": "manual", "appliesTo": ["start", "continue"]}


class AlwaysRule(EligibilityPlugin):
    metadata = RuleMetadata(id="always", name="Always", description="Fixed verdict")

    def __init__(self, eligible: bool):
        self.eligible = eligible

    async def evaluate(self, context, config):
        return EligibilityResult(eligible=self.eligible, reason="fixed")


class BrokenRule(EligibilityPlugin):
    metadata = RuleMetadata(id="broken", name="Broken", description="Raises")

    async def evaluate(self, context, config):
        raise ValueError("lookup failed")


def _setup_worker(storage, benefit_rules):
    storage.benefits.add_benefit("ben-1", "Health")
    storage.policies.add_policy("pol-1", benefit_rules, name="Standard")
    storage.workers.add_employer("emp-1", name="Acme", policy_id="pol-1")
    storage.workers.add_worker("w-1", employer_id="emp-1", ws_id="ws-active")


@pytest.mark.parametrize(
    ("eligible", "has_record", "expected"),
    [
        (True, True, ("none", "Already has benefit for this month")),
        (True, False, ("create", "Passed start eligibility scan")),
        (False, True, ("delete", "Failed start eligibility scan - removing existing record")),
        (False, False, ("none", "Failed start eligibility scan - no record to remove")),
    ],
)
def test_decide_action_table(eligible, has_record, expected):
    assert decide_action("start", eligible, has_record) == expected


@pytest.mark.asyncio
async def test_scan_type_follows_previous_month(storage, registry, hours_rule):
    storage.benefits.add_benefit("ben-2", "Dental")
    _setup_worker(storage, {"ben-1": [hours_rule()], "ben-2": [hours_rule()]})
    storage.benefits.add_record("w-1", "ben-1", 1, 2025)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "test")

    scan_types = {a.benefit_id: a.scan_type for a in result.actions}
    assert scan_types == {"ben-1": "continue", "ben-2": "start"}
    assert result.previous_month_benefit_ids == ["ben-1"]


@pytest.mark.asyncio
async def test_previous_month_wraps_year(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()]})
    storage.benefits.add_record("w-1", "ben-1", 12, 2024)

    result = await run_benefits_scan(storage, registry, "w-1", 1, 2025, "test")

    assert result.actions[0].scan_type == "continue"


@pytest.mark.asyncio
async def test_test_mode_does_not_write(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()]})
    storage.workers.set_hours("w-1", 1, 2025, 10)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "test")

    assert result.actions[0].action == "create"
    assert result.actions[0].executed is None
    assert result.summary.created == 1
    assert storage.benefits.records_for("w-1", 2, 2025) == []


@pytest.mark.asyncio
async def test_live_mode_creates_record_for_resolved_employer(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()]})
    storage.workers.set_hours("w-1", 1, 2025, 10)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    records = storage.benefits.records_for("w-1", 2, 2025)
    assert [(r.benefit_id, r.employer_id) for r in records] == [("ben-1", "emp-1")]
    assert result.actions[0].executed is True
    assert result.policy_source == "Employer current policy (Acme)"
    assert result.summary.created == 1


@pytest.mark.asyncio
async def test_live_scan_is_idempotent(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()]})
    storage.workers.set_hours("w-1", 1, 2025, 10)

    await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")
    second = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    assert [a.action for a in second.actions] == ["none"]
    assert second.summary.created == 0
    assert second.summary.deleted == 0
    assert len(storage.benefits.records_for("w-1", 2, 2025)) == 1


@pytest.mark.asyncio
async def test_lapsed_benefit_is_removed(storage, registry, hours_rule):
    """Held last month, no hours four months back: the current record goes."""
    _setup_worker(storage, {"ben-1": [hours_rule(months_prior=4)]})
    storage.benefits.add_record("w-1", "ben-1", 1, 2025)
    storage.benefits.add_record("w-1", "ben-1", 2, 2025)
    storage.workers.set_hours("w-1", 10, 2024, 0)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    action = result.actions[0]
    assert action.scan_type == "continue"
    assert action.action == "delete"
    assert action.rule_results[0].reason == "Worker has no hours in 2024-10 (4 months prior)"
    assert storage.benefits.records_for("w-1", 2, 2025) == []
    assert result.summary.deleted == 1


@pytest.mark.asyncio
async def test_manual_benefit_is_never_created(storage, registry):
    _setup_worker(storage, {"ben-1": [MANUAL_RULE]})
    storage.workers.set_hours("w-1", 1, 2025, 40)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    action = result.actions[0]
    assert action.eligible is False
    assert action.action == "none"
    assert storage.benefits.records_for("w-1", 2, 2025) == []


@pytest.mark.asyncio
async def test_manual_benefit_keeps_existing_record(storage, registry):
    _setup_worker(storage, {"ben-1": [MANUAL_RULE]})
    storage.benefits.add_record("w-1", "ben-1", 2, 2025)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    assert result.actions[0].action == "none"
    assert result.actions[0].action_reason == "Already has benefit for this month"
    assert len(storage.benefits.records_for("w-1", 2, 2025)) == 1


@pytest.mark.asyncio
async def test_failed_action_does_not_stop_siblings(storage):
    registry = RuleRegistry([AlwaysRule(True)])
    rule = {"ruleId": "always", "appliesTo": ["start"]}
    storage.benefits.add_benefit("ben-2", "Dental")
    _setup_worker(storage, {"ben-1": [rule], "ben-2": [rule]})
    storage.benefits.fail_create_for.add("ben-1")

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    by_id = {a.benefit_id: a for a in result.actions}
    assert by_id["ben-1"].executed is False
    assert "insert failed" in by_id["ben-1"].execution_error
    assert by_id["ben-2"].executed is True
    assert result.summary.created == 1
    assert result.summary.errors == 1


@pytest.mark.asyncio
async def test_rule_error_never_deletes(storage):
    registry = RuleRegistry([BrokenRule()])
    _setup_worker(storage, {"ben-1": [{"ruleId": "broken", "appliesTo": ["start"]}]})
    storage.benefits.add_record("w-1", "ben-1", 2, 2025)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    action = result.actions[0]
    assert action.action == "none"
    assert "lookup failed" in action.evaluation_error
    assert len(storage.benefits.records_for("w-1", 2, 2025)) == 1
    assert result.summary.errors == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("stored_rule", "rule_id"),
    [
        ({"ruleId": "hours-lookback", "config": {"monthsPrior": 1}}, "hours-lookback"),
        ({"pluginkey": "hours-lookback", "appliesTo": ["continue"]}, "<unnamed>"),
        ({"ruleId": "hours-lookback", "appliesTo": []}, "hours-lookback"),
    ],
)
async def test_malformed_stored_rule_keeps_existing_record(
    storage, registry, stored_rule, rule_id
):
    _setup_worker(storage, {"ben-1": [stored_rule]})
    storage.benefits.add_record("w-1", "ben-1", 1, 2025)
    storage.benefits.add_record("w-1", "ben-1", 2, 2025)
    storage.workers.set_hours("w-1", 1, 2025, 40)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    action = result.actions[0]
    assert action.action == "none"
    assert action.action_reason == f"Eligibility evaluation failed for rule {rule_id}"
    assert action.evaluation_error is not None
    assert len(storage.benefits.records_for("w-1", 2, 2025)) == 1
    assert result.summary.deleted == 0
    assert result.summary.errors == 1


@pytest.mark.asyncio
async def test_create_without_employer_is_skipped(storage, registry, hours_rule):
    storage.benefits.add_benefit("ben-1", "Health")
    storage.policies.add_policy("pol-default", {"ben-1": [hours_rule()]}, name="Default")
    storage.policies.variables["policy_default"] = "pol-default"
    storage.workers.add_worker("w-1")
    storage.workers.set_hours("w-1", 1, 2025, 10)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    action = result.actions[0]
    assert result.policy_source == "System default policy"
    assert action.action == "create"
    assert action.executed is False
    assert action.execution_error == "No employer to attribute the benefit to"
    assert storage.benefits.records_for("w-1", 2, 2025) == []
    assert result.summary.created == 0
    assert result.summary.errors == 1


@pytest.mark.asyncio
async def test_default_policy_uses_home_employer(storage, registry, hours_rule):
    storage.benefits.add_benefit("ben-1", "Health")
    storage.policies.add_policy("pol-default", {"ben-1": [hours_rule()]}, name="Default")
    storage.policies.variables["policy_default"] = "pol-default"
    storage.workers.add_employer("emp-2", name="No Policy Co")
    storage.workers.add_worker("w-1", employer_id="emp-2")
    storage.workers.set_hours("w-1", 1, 2025, 10)

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "live")

    records = storage.benefits.records_for("w-1", 2, 2025)
    assert [r.employer_id for r in records] == ["emp-2"]
    assert result.actions[0].executed is True


@pytest.mark.asyncio
async def test_benefit_missing_from_catalogue_is_skipped(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()], "ben-gone": [hours_rule()]})

    result = await run_benefits_scan(storage, registry, "w-1", 2, 2025, "test")

    assert [a.benefit_id for a in result.actions] == ["ben-1"]
    assert result.summary.total_evaluated == 1


@pytest.mark.asyncio
async def test_unknown_worker_raises(storage, registry):
    with pytest.raises(WorkerNotFoundError):
        await run_benefits_scan(storage, registry, "ghost", 2, 2025, "test")


@pytest.mark.asyncio
async def test_worker_without_policy_raises(storage, registry):
    storage.workers.add_worker("w-9")

    with pytest.raises(PolicyNotFoundError):
        await run_benefits_scan(storage, registry, "w-9", 2, 2025, "test")


@pytest.mark.asyncio
async def test_result_serializes_to_dict(storage, registry, hours_rule):
    _setup_worker(storage, {"ben-1": [hours_rule()]})

    payload = (await run_benefits_scan(storage, registry, "w-1", 2, 2025, "test")).to_dict()

    assert payload["policy_id"] == "pol-1"
    assert payload["policy_name"] == "Standard"
    assert payload["summary"]["total_evaluated"] == 1
    assert payload["actions"][0]["rule_results"][0]["rule_id"] == "hours-lookback"
