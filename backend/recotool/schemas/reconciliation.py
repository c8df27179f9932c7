"""Reconciliation classification schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from recotool.engine.context import EvaluationContext
from recotool.engine.evaluator import EvaluationResult
from recotool.engine.rules import RuleScope
from recotool.engine.runner import BatchResult, DebugReport, LineOutcome


class RunRulesRequest(BaseModel):
    line_ids: list[str] = Field(min_length=1)
    scope: RuleScope = RuleScope.EDIT

    @field_validator("scope")
    @classmethod
    def _evaluation_scope(cls, value: RuleScope) -> RuleScope:
        if value == RuleScope.BOTH:
            raise ValueError("scope must be Import or Edit")
        return value


class LineFailureResponse(BaseModel):
    line_id: str
    kind: str
    message: str


class BatchResultResponse(BaseModel):
    run_id: str
    scope: RuleScope
    origin: str
    evaluated_at: datetime
    requested: int
    classified: int
    failed: int
    unclassified: list[str]
    awaiting_confirmation: list[str]
    failures: list[LineFailureResponse]
    cancelled: bool
    error: str | None = None
    summary: str

    @classmethod
    def from_result(cls, result: BatchResult) -> "BatchResultResponse":
        return cls(
            run_id=result.run_id,
            scope=result.scope,
            origin=result.origin.value,
            evaluated_at=result.evaluated_at,
            requested=result.requested,
            classified=result.classified,
            failed=result.failed,
            unclassified=result.unclassified,
            awaiting_confirmation=result.awaiting_confirmation,
            failures=[LineFailureResponse(line_id=f.line_id, kind=f.kind, message=f.message) for f in result.failures],
            cancelled=result.cancelled,
            error=result.error,
            summary=result.summary(),
        )


class LineOutcomeResponse(BaseModel):
    line_id: str
    status: str
    rule_id: str | None = None
    outputs_summary: str | None = None
    updated_line_ids: list[str] = []
    failure: LineFailureResponse | None = None

    @classmethod
    def from_outcome(cls, outcome: LineOutcome) -> "LineOutcomeResponse":
        failure = None
        if outcome.failure is not None:
            failure = LineFailureResponse(
                line_id=outcome.failure.line_id,
                kind=outcome.failure.kind,
                message=outcome.failure.message,
            )
        result = outcome.result
        return cls(
            line_id=outcome.line_id,
            status=outcome.status.value,
            rule_id=outcome.rule_id,
            outputs_summary=result.outputs_summary if result else None,
            updated_line_ids=list(result.target_line_ids) if result else [],
            failure=failure,
        )


class DebugResponse(BaseModel):
    line_id: str
    context: dict[str, Any]
    winner_rule_id: str | None
    ambiguous_rule_ids: list[str]
    entries: list[dict[str, Any]]

    @classmethod
    def from_report(cls, report: DebugReport) -> "DebugResponse":
        trace = report.trace.as_dict()
        return cls(
            line_id=report.line_id,
            context=report.context.as_dict(),
            winner_rule_id=trace["winner_rule_id"],
            ambiguous_rule_ids=trace["ambiguous_rule_ids"],
            entries=trace["entries"],
        )


class PreviewResponse(BaseModel):
    line_id: str
    context: dict[str, Any]
    rule_id: str | None = None
    outputs_summary: str | None = None
    auto_apply: bool | None = None
    requires_user_confirm: bool = False
    user_message: str | None = None

    @classmethod
    def from_evaluation(cls, context: EvaluationContext, evaluation: EvaluationResult) -> "PreviewResponse":
        rule = evaluation.rule
        return cls(
            line_id=context.line_id,
            context=context.as_dict(),
            rule_id=rule.rule_id if rule else None,
            outputs_summary=rule.outputs.summary() if rule else None,
            auto_apply=rule.auto_apply if rule else None,
            requires_user_confirm=evaluation.requires_user_confirm,
            user_message=evaluation.user_message,
        )
