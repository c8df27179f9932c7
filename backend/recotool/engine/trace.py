"""Evaluation trace: per-rule, per-condition audit of one evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ConditionCheck:
    field: str
    expected: str
    actual: Any
    satisfied: bool

    def as_dict(self) -> dict:
        return {
            "field": self.field,
            "expected": self.expected,
            "actual": self.actual,
            "satisfied": self.satisfied,
        }


@dataclass(frozen=True)
class RuleTrace:
    rule_id: str
    priority: int
    enabled: bool
    in_scope: bool
    matched: bool
    conditions: tuple[ConditionCheck, ...] = ()

    @property
    def failed_conditions(self) -> tuple[ConditionCheck, ...]:
        return tuple(c for c in self.conditions if not c.satisfied)

    def as_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "priority": self.priority,
            "enabled": self.enabled,
            "in_scope": self.in_scope,
            "matched": self.matched,
            "conditions": [c.as_dict() for c in self.conditions],
        }


@dataclass(frozen=True)
class EvaluationTrace:
    entries: tuple[RuleTrace, ...] = ()
    winner_rule_id: str | None = None
    # Other rules that matched at the winner's priority (data-quality signal).
    ambiguous_rule_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.ambiguous_rule_ids)

    def entry(self, rule_id: str) -> RuleTrace | None:
        for item in self.entries:
            if item.rule_id == rule_id:
                return item
        return None

    def as_dict(self) -> dict:
        return {
            "winner_rule_id": self.winner_rule_id,
            "ambiguous_rule_ids": list(self.ambiguous_rule_ids),
            "entries": [e.as_dict() for e in self.entries],
        }
