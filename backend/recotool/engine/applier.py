"""Output application: turns a winning rule into field changes on target lines.

The applier does not touch any stored or bound object. It returns an
immutable ``ClassificationResult`` listing, per target line, the fields to
write; the caller merges that into whatever model it owns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Mapping

from recotool.engine.lines import ActionStatus, LineSnapshot, Referentials
from recotool.engine.rules import ApplyTarget, RuleOutputs, TruthRule

SELF_ROLE = "self"
COUNTERPART_ROLE = "counterpart"


@dataclass(frozen=True)
class LineMutation:
    line_id: str
    role: str
    changes: Mapping[str, Any]

    def merge_into(self, target: Any) -> None:
        """Write the changes onto ``target`` (ORM row, view model, ...)."""
        for name, value in self.changes.items():
            setattr(target, name, value)


@dataclass(frozen=True)
class ClassificationResult:
    rule_id: str
    origin_line_id: str
    apply_to: ApplyTarget
    applied_at: datetime
    outputs_summary: str
    message: str | None
    mutations: tuple[LineMutation, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.mutations

    @property
    def target_line_ids(self) -> tuple[str, ...]:
        return tuple(m.line_id for m in self.mutations)

    def for_line(self, line_id: str) -> LineMutation | None:
        for mutation in self.mutations:
            if mutation.line_id == line_id:
                return mutation
        return None


def rule_comment(rule_id: str, message: str) -> str:
    return f"[Rule {rule_id}] {message}"


def append_comment(existing: str | None, rule_id: str, message: str, applied_at: datetime) -> str | None:
    """Append the rule message once; return None when it is already present."""
    marker = rule_comment(rule_id, message)
    if existing and marker in existing:
        return None
    entry = f"[{applied_at:%Y-%m-%d %H:%M}] {marker}"
    if not existing or not existing.strip():
        return entry
    return f"{existing}\n{entry}"


class OutputApplier:
    def outputs_to_changes(
        self,
        outputs: RuleOutputs,
        applied_at: datetime,
        referentials: Referentials,
    ) -> dict[str, Any]:
        """Field changes for the outputs a rule sets; unset outputs are left out."""
        changes: dict[str, Any] = {}

        if outputs.action_id is not None:
            changes["action_id"] = outputs.action_id
            if referentials.is_na_action(outputs.action_id):
                changes["action_status"] = None
                changes["action_date"] = None
            else:
                changes["action_status"] = ActionStatus.PENDING
                changes["action_date"] = applied_at

        if outputs.kpi_id is not None:
            changes["kpi_id"] = outputs.kpi_id
        if outputs.incident_type_id is not None:
            changes["incident_type_id"] = outputs.incident_type_id
        if outputs.risky_item is not None:
            changes["risky_item"] = outputs.risky_item
        if outputs.reason_non_risky_id is not None:
            changes["reason_non_risky_id"] = outputs.reason_non_risky_id
        if outputs.to_remind is not None:
            changes["to_remind"] = outputs.to_remind
        if outputs.to_remind_days is not None:
            changes["to_remind"] = True
            changes["to_remind_date"] = applied_at.date() + timedelta(days=outputs.to_remind_days)
        if outputs.first_claim_today:
            changes["first_claim_date"] = applied_at.date()

        return changes

    def apply(
        self,
        rule: TruthRule,
        self_line: LineSnapshot,
        counterpart_line: LineSnapshot | None,
        *,
        applied_at: datetime,
        referentials: Referentials,
    ) -> ClassificationResult:
        base_changes = self.outputs_to_changes(rule.outputs, applied_at, referentials)

        targets: list[tuple[LineSnapshot, str]] = []
        if rule.apply_to in (ApplyTarget.SELF, ApplyTarget.BOTH):
            targets.append((self_line, SELF_ROLE))
        if rule.apply_to in (ApplyTarget.COUNTERPART, ApplyTarget.BOTH):
            # No counterpart is a no-op, not a failure.
            if counterpart_line is not None and counterpart_line.line_id != self_line.line_id:
                targets.append((counterpart_line, COUNTERPART_ROLE))

        mutations = []
        for line, role in targets:
            changes = dict(base_changes)
            if rule.message:
                comments = append_comment(line.comments, rule.rule_id, rule.message, applied_at)
                if comments is not None:
                    changes["comments"] = comments
            if changes:
                mutations.append(LineMutation(line.line_id, role, MappingProxyType(changes)))

        return ClassificationResult(
            rule_id=rule.rule_id,
            origin_line_id=self_line.line_id,
            apply_to=rule.apply_to,
            applied_at=applied_at,
            outputs_summary=rule.outputs.summary(referentials),
            message=rule.message,
            mutations=tuple(mutations),
        )
