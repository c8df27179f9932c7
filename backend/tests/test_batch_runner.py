"""Batch runner tests with in-memory rule, line and sink collaborators."""

import asyncio
import dataclasses
from decimal import Decimal

import pytest

from conftest import ACTION_INVESTIGATE, NOW, make_line
from recotool.core.exceptions import ApplicationError, ConfigurationError, ContextResolutionError
from recotool.engine.lines import GroupingFact, LineBundle, RelatedData
from recotool.engine.rules import RuleScope, TruthRule
from recotool.engine.runner import BatchRunner, LineStatus, RunOrigin, distinct_line_ids


class StaticRules:
    def __init__(self, rules=None, error: Exception | None = None):
        self.rules = rules or []
        self.error = error
        self.loads = 0

    async def load_rules(self):
        self.loads += 1
        if self.error:
            raise self.error
        return list(self.rules)


class MemoryLines:
    """Line source and sink over a dict of snapshots."""

    def __init__(self, lines, grouping=None, fail_commit_for=(), broken=()):
        self.lines = {line.line_id: line for line in lines}
        self.grouping = grouping or {}
        self.fail_commit_for = set(fail_commit_for)
        self.broken = set(broken)
        self.commits = []

    async def prepare(self, line_ids):
        pass

    async def fetch(self, line_id):
        if line_id in self.broken:
            raise ValueError("corrupt amount")
        line = self.lines.get(line_id)
        if line is None:
            raise ContextResolutionError(f"line {line_id!r} not found", line_id=line_id)
        grouping = self.grouping.get(line_id, GroupingFact())
        counterpart = self.lines.get(grouping.counterpart_line_id) if grouping.counterpart_line_id else None
        return LineBundle(line, RelatedData(grouping=grouping, counterpart=counterpart))

    async def commit(self, result):
        if result.origin_line_id in self.fail_commit_for:
            raise ApplicationError("storage locked", line_id=result.origin_line_id)
        await asyncio.sleep(0)
        self.commits.append(result)
        for mutation in result.mutations:
            self.lines[mutation.line_id] = dataclasses.replace(self.lines[mutation.line_id], **mutation.changes)


def runner_for(rules, lines, referentials, **kwargs):
    return BatchRunner(rules, lines, lines, referentials, clock=lambda: NOW, **kwargs)


CLASSIFY_ALL = TruthRule.of(rule_id="all", output_action_id=ACTION_INVESTIGATE, output_kpi_id=16)


@pytest.mark.asyncio
async def test_batch_tolerates_bad_lines(referentials):
    good = [make_line(f"L{i:03d}") for i in range(97)]
    # Unknown country and missing amount cannot be resolved.
    bad = [
        make_line("BAD1", country_id="XX", kpi_id=3),
        make_line("BAD2", signed_amount=None, kpi_id=3),
        make_line("BAD3", country_id="ZZ", kpi_id=3),
    ]
    lines = MemoryLines(good + bad)
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials)

    result = await runner.run_batch([l.line_id for l in good + bad], RuleScope.EDIT)

    assert result.classified == 97
    assert result.failed == 3
    assert result.summary() == "97 classified, 3 failed"
    assert {f.line_id for f in result.failures} == {"BAD1", "BAD2", "BAD3"}
    assert all(f.kind == "context" for f in result.failures)
    for line_id in ("BAD1", "BAD2", "BAD3"):
        assert lines.lines[line_id].kpi_id == 3
        assert lines.lines[line_id].action_id is None
    assert lines.lines["L000"].kpi_id == 16


@pytest.mark.asyncio
async def test_rules_loaded_once_per_batch(referentials):
    rules = StaticRules([CLASSIFY_ALL])
    lines = MemoryLines([make_line("A"), make_line("B")])
    await runner_for(rules, lines, referentials).run_batch(["A", "B"], RuleScope.EDIT)
    assert rules.loads == 1


@pytest.mark.asyncio
async def test_configuration_error_touches_nothing(referentials):
    lines = MemoryLines([make_line("A"), make_line("B")])
    runner = runner_for(StaticRules(error=ConfigurationError("rules table unavailable")), lines, referentials)

    result = await runner.run_batch(["A", "B"], RuleScope.EDIT)

    assert result.classified == 0
    assert result.error == "rules table unavailable"
    assert [f.kind for f in result.failures] == ["configuration", "configuration"]
    assert lines.commits == []


@pytest.mark.asyncio
async def test_application_error_is_a_line_failure(referentials):
    lines = MemoryLines([make_line("A"), make_line("B")], fail_commit_for={"A"})
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials)

    result = await runner.run_batch(["A", "B"], RuleScope.EDIT)

    assert result.classified == 1
    assert result.failures[0].line_id == "A"
    assert result.failures[0].kind == "application"
    assert lines.lines["A"].action_id is None
    assert lines.lines["B"].action_id == ACTION_INVESTIGATE


@pytest.mark.asyncio
async def test_unmatched_lines_are_reported(referentials):
    rule = TruthRule.of(rule_id="recv", account_side="R", output_action_id=1)
    lines = MemoryLines([make_line("A")])
    result = await runner_for(StaticRules([rule]), lines, referentials).run_batch(["A"], RuleScope.EDIT)
    assert result.classified == 0
    assert result.unclassified == ["A"]
    assert lines.commits == []


@pytest.mark.asyncio
async def test_fired_counts_even_without_change(referentials):
    rule = TruthRule.of(rule_id="cp", apply_to="Counterpart", output_kpi_id=16)
    lines = MemoryLines([make_line("A")])
    result = await runner_for(StaticRules([rule]), lines, referentials).run_batch(["A"], RuleScope.EDIT)
    assert result.classified == 1
    assert result.outcomes[0].rule_id == "cp"
    assert lines.commits == []


@pytest.mark.asyncio
async def test_auto_apply_false_awaits_confirmation(referentials):
    rule = TruthRule.of(rule_id="manual", auto_apply=False, output_action_id=1)
    lines = MemoryLines([make_line("A")])
    result = await runner_for(StaticRules([rule]), lines, referentials).run_batch(["A"], RuleScope.EDIT)
    assert result.classified == 1
    assert result.awaiting_confirmation == ["A"]
    assert result.outcomes[0].status == LineStatus.AWAITING_CONFIRMATION
    assert lines.lines["A"].action_id is None


@pytest.mark.asyncio
async def test_cancellation_is_checked_between_lines(referentials):
    cancel = asyncio.Event()
    events = []

    def on_applied(event):
        events.append(event)
        if len(events) == 2:
            cancel.set()

    lines = MemoryLines([make_line(f"L{i}") for i in range(5)])
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials, on_applied=on_applied)

    result = await runner.run_batch([f"L{i}" for i in range(5)], RuleScope.EDIT, cancel=cancel)

    assert result.cancelled
    assert result.classified == 2
    assert result.processed == 2
    assert lines.lines["L2"].action_id is None


@pytest.mark.asyncio
async def test_rule_applied_events_per_committed_line(referentials):
    rule = TruthRule.of(rule_id="both", apply_to="Both", output_kpi_id=18, message="Paired")
    pivot = make_line("P1", signed_amount=Decimal("50"))
    receivable = make_line("R1", account_id="REC-FR", signed_amount=Decimal("-50"))
    grouping = {"P1": GroupingFact(counterpart_line_id="R1", is_grouped=True, counterpart_count=1)}
    lines = MemoryLines([pivot, receivable], grouping)
    events = []

    async def on_applied(event):
        events.append(event)

    runner = runner_for(StaticRules([rule]), lines, referentials, on_applied=on_applied)
    await runner.run_batch(["P1"], RuleScope.IMPORT, origin=RunOrigin.IMPORT)

    assert [(e.line_id, e.rule_id, e.origin) for e in events] == [
        ("P1", "both", RunOrigin.IMPORT),
        ("R1", "both", RunOrigin.IMPORT),
    ]
    assert events[0].outputs_summary == "KPI=18 (Under investigation)"
    assert events[0].applied_at == NOW
    assert lines.lines["R1"].kpi_id == 18
    assert "[Rule both] Paired" in lines.lines["R1"].comments


@pytest.mark.asyncio
async def test_shared_counterpart_updates_are_not_lost(referentials):
    # Two pivot lines wrongly pointing at the same receivable line.
    rule = TruthRule.of(rule_id="cp", apply_to="Counterpart", output_kpi_id=18, message="from pivot")
    p1, p2 = make_line("P1"), make_line("P2")
    r1 = make_line("R1", account_id="REC-FR")
    fact = GroupingFact(counterpart_line_id="R1", is_grouped=True, counterpart_count=1)
    lines = MemoryLines([p1, p2, r1], {"P1": fact, "P2": fact})
    runner = runner_for(StaticRules([rule]), lines, referentials, concurrency=4)

    result = await runner.run_batch(["P1", "P2"], RuleScope.EDIT)

    assert result.classified == 2
    assert len(lines.commits) == 2
    assert lines.lines["R1"].kpi_id == 18


@pytest.mark.asyncio
async def test_shared_counterpart_keeps_every_comment(referentials):
    rule_a = TruthRule.of(
        rule_id="a", current_action_id=1, apply_to="Counterpart", output_kpi_id=18, message="from P1"
    )
    rule_b = TruthRule.of(
        rule_id="b", current_action_id=ACTION_INVESTIGATE, apply_to="Counterpart", output_kpi_id=18, message="from P2"
    )
    p1 = make_line("P1", action_id=1)
    p2 = make_line("P2", action_id=ACTION_INVESTIGATE)
    r1 = make_line("R1", account_id="REC-FR")
    fact = GroupingFact(counterpart_line_id="R1", is_grouped=True, counterpart_count=1)
    lines = MemoryLines([p1, p2, r1], {"P1": fact, "P2": fact})
    runner = runner_for(StaticRules([rule_a, rule_b]), lines, referentials, concurrency=4)

    result = await runner.run_batch(["P1", "P2"], RuleScope.EDIT)

    assert result.classified == 2
    comments = lines.lines["R1"].comments
    assert "[Rule a] from P1" in comments
    assert "[Rule b] from P2" in comments


@pytest.mark.asyncio
async def test_failing_callback_does_not_abort_batch(referentials):
    def on_applied(event):
        raise RuntimeError("toast service down")

    lines = MemoryLines([make_line("A"), make_line("B")])
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials, on_applied=on_applied)

    result = await runner.run_batch(["A", "B"], RuleScope.EDIT)

    assert result.classified == 2
    assert result.failed == 0
    assert len(lines.commits) == 2
    assert lines.lines["A"].action_id == ACTION_INVESTIGATE
    assert lines.lines["B"].action_id == ACTION_INVESTIGATE


@pytest.mark.asyncio
async def test_unexpected_line_error_is_a_line_failure(referentials):
    lines = MemoryLines([make_line("A"), make_line("B"), make_line("C")], broken={"B"})
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials)

    result = await runner.run_batch(["A", "B", "C"], RuleScope.EDIT)

    assert result.classified == 2
    assert [(f.line_id, f.kind, f.message) for f in result.failures] == [("B", "error", "corrupt amount")]
    assert lines.lines["A"].action_id == ACTION_INVESTIGATE
    assert lines.lines["C"].action_id == ACTION_INVESTIGATE


@pytest.mark.asyncio
async def test_single_batch_instant(referentials):
    ticks = iter([NOW, NOW.replace(day=11), NOW.replace(day=12)])
    lines = MemoryLines([make_line("A"), make_line("B")])
    runner = BatchRunner(StaticRules([CLASSIFY_ALL]), lines, lines, referentials, clock=lambda: next(ticks))
    result = await runner.run_batch(["A", "B"], RuleScope.EDIT)
    assert result.evaluated_at == NOW
    assert lines.lines["A"].action_date == NOW
    assert lines.lines["B"].action_date == NOW


@pytest.mark.asyncio
async def test_run_line_and_debug(referentials):
    lines = MemoryLines([make_line("A")])
    runner = runner_for(StaticRules([CLASSIFY_ALL]), lines, referentials)

    report = await runner.debug_line("A")
    assert report.trace.winner_rule_id == "all"
    assert lines.commits == []

    outcome = await runner.run_line("A")
    assert outcome.status == LineStatus.CLASSIFIED
    assert outcome.result.target_line_ids == ("A",)

    missing = await runner.run_line("nope")
    assert missing.status == LineStatus.FAILED
    assert missing.failure.kind == "context"


def test_distinct_line_ids():
    assert distinct_line_ids(["a", "A", " b ", "", None, "c", "b"]) == ["a", "b", "c"]
