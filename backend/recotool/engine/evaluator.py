"""Rule evaluator: first full match by priority.

The evaluator picks exactly one rule (or none) per context. It never merges
the outputs of several matching rules: the first eligible rule, in ascending
priority with the repository's stable tie-break, that satisfies every declared
condition wins, and later rules are not applied even if they also match.

Evaluation is a pure function of (context, rules, scope).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from recotool.engine.context import EvaluationContext
from recotool.engine.rules import RuleOutputs, RuleScope, TruthRule
from recotool.engine.trace import ConditionCheck, EvaluationTrace, RuleTrace


@dataclass(frozen=True)
class EvaluationResult:
    rule: TruthRule | None
    trace: EvaluationTrace

    @property
    def matched(self) -> bool:
        return self.rule is not None

    @property
    def outputs(self) -> RuleOutputs | None:
        return self.rule.outputs if self.rule else None

    @property
    def requires_user_confirm(self) -> bool:
        return bool(self.rule and self.rule.message)

    @property
    def user_message(self) -> str | None:
        return self.rule.message if self.rule else None


def check_rule(rule: TruthRule, context: EvaluationContext) -> tuple[bool, tuple[ConditionCheck, ...]]:
    """Evaluate every declared condition of ``rule``; wildcards are not listed."""
    checks = []
    matched = True
    for cond in rule.declared_conditions():
        actual = getattr(context, cond.context_attr)
        satisfied = cond.condition.check(actual)
        checks.append(ConditionCheck(cond.field, cond.condition.expected(), actual, satisfied))
        if not satisfied:
            matched = False
    return matched, tuple(checks)


class RuleEvaluator:
    def evaluate(
        self,
        context: EvaluationContext,
        rules: Sequence[TruthRule],
        scope: RuleScope,
        *,
        diagnostic: bool = False,
    ) -> EvaluationResult:
        """Find the winning rule for ``context``.

        ``rules`` must already be ordered (see ``order_rules``). In diagnostic
        mode every rule is traced, including disabled and out-of-scope ones and
        those after the winner; otherwise the trace stops at the winner.
        """
        if scope == RuleScope.BOTH:
            raise ValueError("evaluation scope must be Import or Edit")

        entries: list[RuleTrace] = []
        winner: TruthRule | None = None
        ambiguous: list[str] = []

        for rule in rules:
            eligible = rule.is_eligible(scope)
            if not eligible:
                if diagnostic:
                    entries.append(RuleTrace(
                        rule_id=rule.rule_id,
                        priority=rule.priority,
                        enabled=rule.enabled,
                        in_scope=rule.scope in (RuleScope.BOTH, scope),
                        matched=False,
                    ))
                continue

            if winner is not None and rule.priority != winner.priority and not diagnostic:
                break

            matched, checks = check_rule(rule, context)

            if winner is None or diagnostic:
                entries.append(RuleTrace(
                    rule_id=rule.rule_id,
                    priority=rule.priority,
                    enabled=True,
                    in_scope=True,
                    matched=matched,
                    conditions=checks,
                ))

            if not matched:
                continue
            if winner is None:
                winner = rule
            elif rule.priority == winner.priority:
                ambiguous.append(rule.rule_id)

        trace = EvaluationTrace(
            entries=tuple(entries),
            winner_rule_id=winner.rule_id if winner else None,
            ambiguous_rule_ids=tuple(ambiguous),
        )
        return EvaluationResult(rule=winner, trace=trace)
