"""Rule evaluator tests: first full match by priority, scope, trace."""

from datetime import timedelta

import pytest

from conftest import ACTION_DEFAULT, ACTION_INVESTIGATE, NOW, make_line
from recotool.engine.context import ContextBuilder, EvaluationContext
from recotool.engine.evaluator import RuleEvaluator
from recotool.engine.lines import RelatedData
from recotool.engine.rules import RuleScope, TruthRule, order_rules


def ctx(**fields) -> EvaluationContext:
    return EvaluationContext(line_id=fields.pop("line_id", "L1"), evaluated_at=NOW, **fields)


def evaluate(context, rules, scope=RuleScope.EDIT, **kwargs):
    return RuleEvaluator().evaluate(context, order_rules(rules), scope, **kwargs)


@pytest.fixture
def scenario_rules():
    rule_a = TruthRule.of(
        rule_id="A", scope="Both", priority=5, account_side="P",
        has_dwings_link=False, output_action_id=ACTION_INVESTIGATE,
    )
    rule_b = TruthRule.of(
        rule_id="B", scope="Both", priority=50, account_side="*", output_action_id=ACTION_DEFAULT,
    )
    return [rule_a, rule_b]


def test_scenario_pivot_without_link_picks_a(scenario_rules, referentials):
    context = ContextBuilder().build(make_line(), RelatedData(), referentials, NOW)
    result = evaluate(context, scenario_rules)
    assert result.rule.rule_id == "A"
    assert result.outputs.action_id == ACTION_INVESTIGATE


def test_scenario_pivot_with_link_picks_b(scenario_rules, referentials):
    line = make_line(dwings_invoice_id="INV-9")
    context = ContextBuilder().build(line, RelatedData(), referentials, NOW)
    result = evaluate(context, scenario_rules)
    assert result.rule.rule_id == "B"
    assert result.outputs.action_id == ACTION_DEFAULT


def test_evaluation_is_deterministic(scenario_rules):
    context = ctx(account_side="P", has_dwings_link=False)
    first = evaluate(context, scenario_rules, diagnostic=True)
    second = evaluate(context, scenario_rules, diagnostic=True)
    assert first.rule.rule_id == second.rule.rule_id
    assert first.trace == second.trace


def test_all_wildcard_rule_matches_everything():
    catch_all = TruthRule.of(rule_id="catch-all", priority=1000, output_kpi_id=1)
    for context in (ctx(), ctx(account_side="R", sign="D", is_grouped=True)):
        assert evaluate(context, [catch_all]).rule is catch_all


def test_priority_order_and_swap():
    context = ctx(account_side="P")
    r1 = TruthRule.of(rule_id="R1", priority=10, output_action_id=1)
    r2 = TruthRule.of(rule_id="R2", priority=20, output_action_id=2)
    assert evaluate(context, [r2, r1]).rule.rule_id == "R1"

    r1_low = TruthRule.of(rule_id="R1", priority=20, output_action_id=1)
    r2_high = TruthRule.of(rule_id="R2", priority=10, output_action_id=2)
    assert evaluate(context, [r1_low, r2_high]).rule.rule_id == "R2"


def test_ties_break_on_rule_id_case_insensitive():
    rules = [
        TruthRule.of(rule_id="beta", priority=10, output_action_id=2),
        TruthRule.of(rule_id="Alpha", priority=10, output_action_id=1),
    ]
    result = evaluate(ctx(), rules)
    assert result.rule.rule_id == "Alpha"
    assert result.trace.ambiguous_rule_ids == ("beta",)
    assert result.trace.is_ambiguous


@pytest.mark.parametrize("days,matched", [(4, False), (5, True), (7, True), (10, True), (11, False)])
def test_days_since_trigger_range_is_inclusive(days, matched):
    rule = TruthRule.of(rule_id="range", days_since_trigger_min=5, days_since_trigger_max=10, output_action_id=1)
    assert evaluate(ctx(days_since_trigger=days), [rule]).matched is matched


def test_range_does_not_match_missing_value():
    rule = TruthRule.of(rule_id="range", days_since_trigger_min=0, output_action_id=1)
    result = evaluate(ctx(days_since_trigger=None), [rule])
    assert not result.matched
    check = result.trace.entry("range").failed_conditions[0]
    assert check.field == "DaysSinceTrigger"
    assert check.actual is None


def test_range_against_built_context(referentials):
    rule = TruthRule.of(rule_id="trigger", days_since_trigger_min=5, days_since_trigger_max=10, output_action_id=1)
    line = make_line(trigger_date=(NOW - timedelta(days=10)).date())
    context = ContextBuilder().build(line, RelatedData(), referentials, NOW)
    assert context.days_since_trigger == 10
    assert evaluate(context, [rule]).matched


def test_scope_filtering():
    import_only = TruthRule.of(rule_id="imp", scope="Import", output_action_id=1)
    edit_only = TruthRule.of(rule_id="edt", scope="Edit", output_action_id=2)
    rules = [import_only, edit_only]
    assert evaluate(ctx(), rules, RuleScope.IMPORT).rule.rule_id == "imp"
    assert evaluate(ctx(), rules, RuleScope.EDIT).rule.rule_id == "edt"


def test_both_is_not_an_evaluation_scope():
    with pytest.raises(ValueError):
        evaluate(ctx(), [], RuleScope.BOTH)


def test_disabled_rules_are_skipped():
    disabled = TruthRule.of(rule_id="off", priority=1, enabled=False, output_action_id=1)
    enabled = TruthRule.of(rule_id="on", priority=2, output_action_id=2)
    assert evaluate(ctx(), [disabled, enabled]).rule.rule_id == "on"


def test_first_match_wins_outputs_are_not_merged():
    first = TruthRule.of(rule_id="first", priority=1, output_action_id=1)
    second = TruthRule.of(rule_id="second", priority=2, output_kpi_id=16)
    result = evaluate(ctx(), [first, second])
    assert result.outputs.action_id == 1
    assert result.outputs.kpi_id is None


def test_no_match_leaves_line_unclassified():
    rule = TruthRule.of(rule_id="recv", account_side="R", output_action_id=1)
    result = evaluate(ctx(account_side="P"), [rule])
    assert result.rule is None
    assert result.outputs is None
    assert result.trace.winner_rule_id is None


def test_unknown_flag_does_not_satisfy_concrete_condition():
    rule = TruthRule.of(rule_id="acked", mt_status_acked=True, output_action_id=1)
    assert not evaluate(ctx(is_mt_acked=None), [rule]).matched
    assert evaluate(ctx(is_mt_acked=True), [rule]).matched


def test_multi_value_guarantee_type():
    rule = TruthRule.of(rule_id="gt", guarantee_type="REISSUANCE;ADVISING", output_action_id=1)
    assert evaluate(ctx(guarantee_type="ADVISING"), [rule]).matched
    assert not evaluate(ctx(guarantee_type="ISSUANCE"), [rule]).matched


def test_booking_condition():
    rule = TruthRule.of(rule_id="fr", booking="FR,BE", output_action_id=1)
    assert evaluate(ctx(country_id="fr"), [rule]).matched
    assert not evaluate(ctx(country_id="DE"), [rule]).matched


def test_current_action_condition():
    rule = TruthRule.of(rule_id="follow-up", current_action_id=7, output_action_id=1)
    assert evaluate(ctx(current_action_id=7), [rule]).matched
    assert not evaluate(ctx(current_action_id=None), [rule]).matched


def test_trace_stops_at_winner_unless_diagnostic():
    rules = [
        TruthRule.of(rule_id="miss", priority=1, account_side="R", output_action_id=1),
        TruthRule.of(rule_id="hit", priority=2, output_action_id=2),
        TruthRule.of(rule_id="later", priority=3, output_action_id=3),
        TruthRule.of(rule_id="off", priority=4, enabled=False, output_action_id=4),
    ]
    context = ctx(account_side="P")

    normal = evaluate(context, rules)
    assert [e.rule_id for e in normal.trace.entries] == ["miss", "hit"]

    diagnostic = evaluate(context, rules, diagnostic=True)
    assert [e.rule_id for e in diagnostic.trace.entries] == ["miss", "hit", "later", "off"]
    assert diagnostic.rule.rule_id == "hit"
    assert diagnostic.trace.entry("later").matched
    off = diagnostic.trace.entry("off")
    assert not off.enabled
    assert not off.matched


def test_trace_lists_declared_conditions_only():
    rule = TruthRule.of(rule_id="r", account_side="P", sign="C", output_action_id=1)
    result = evaluate(ctx(account_side="P", sign="D"), [rule])
    entry = result.trace.entry("r")
    assert [c.field for c in entry.conditions] == ["AccountSide", "Sign"]
    assert [c.field for c in entry.failed_conditions] == ["Sign"]


def test_requires_user_confirm_when_message_set():
    rule = TruthRule.of(rule_id="msg", output_action_id=1, message="Check manually")
    result = evaluate(ctx(), [rule])
    assert result.requires_user_confirm
    assert result.user_message == "Check manually"
