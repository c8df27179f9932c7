"""Batch runner: context → evaluation → application over a set of lines.

One batch uses one rule snapshot and one evaluation instant. Lines fail
independently: a bad line is recorded and skipped, never aborting the batch.
Cancellation is checked between lines. Commits to a given target line are
serialized so two originating lines sharing a counterpart cannot lose each
other's updates.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Protocol

import structlog

from recotool.core.exceptions import ConfigurationError, RulesEngineError
from recotool.engine.applier import ClassificationResult, OutputApplier
from recotool.engine.context import DEFAULT_AMOUNT_TOLERANCE, ContextBuilder, EvaluationContext
from recotool.engine.evaluator import EvaluationResult, RuleEvaluator
from recotool.engine.lines import LineBundle, Referentials
from recotool.engine.rules import ApplyTarget, RuleScope, TruthRule, order_rules
from recotool.engine.trace import EvaluationTrace

logger = structlog.get_logger()


class RunOrigin(str, Enum):
    IMPORT = "import"
    EDIT = "edit"
    RUN_NOW = "run-now"


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------

class RuleSource(Protocol):
    async def load_rules(self) -> list[TruthRule]:
        """Ordered rule set; raises ConfigurationError when storage is unusable."""


class LineSource(Protocol):
    async def prepare(self, line_ids: Sequence[str]) -> None:
        """Bulk-load whatever ``fetch`` will need for these lines."""

    async def fetch(self, line_id: str) -> LineBundle:
        """Raises ContextResolutionError when the line cannot be resolved.

        Called again under the target locks right before applying, so it must
        reflect every commit already made through the sink.
        """


class LineSink(Protocol):
    async def commit(self, result: ClassificationResult) -> None:
        """Persist all mutations of ``result`` atomically; raises ApplicationError."""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleAppliedEvent:
    rule_id: str
    line_id: str
    origin: RunOrigin
    outputs_summary: str
    message: str | None
    applied_at: datetime
    country_id: str | None = None


@dataclass(frozen=True)
class LineFailure:
    line_id: str
    kind: str
    message: str


class LineStatus(str, Enum):
    CLASSIFIED = "classified"
    UNCLASSIFIED = "unclassified"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    FAILED = "failed"


@dataclass(frozen=True)
class LineOutcome:
    line_id: str
    status: LineStatus
    rule_id: str | None = None
    result: ClassificationResult | None = None
    failure: LineFailure | None = None

    @property
    def fired(self) -> bool:
        return self.rule_id is not None and self.status != LineStatus.FAILED


@dataclass
class BatchResult:
    run_id: str
    scope: RuleScope
    origin: RunOrigin
    evaluated_at: datetime
    requested: int = 0
    classified: int = 0
    unclassified: list[str] = field(default_factory=list)
    awaiting_confirmation: list[str] = field(default_factory=list)
    failures: list[LineFailure] = field(default_factory=list)
    outcomes: list[LineOutcome] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def summary(self) -> str:
        return f"{self.classified} classified, {self.failed} failed"


@dataclass(frozen=True)
class DebugReport:
    line_id: str
    context: EvaluationContext
    trace: EvaluationTrace


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def distinct_line_ids(line_ids: Iterable[str]) -> list[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for line_id in line_ids:
        if line_id is None or not str(line_id).strip():
            continue
        key = str(line_id).strip().lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(str(line_id).strip())
    return result


class BatchRunner:
    def __init__(
        self,
        rules: RuleSource,
        lines: LineSource,
        sink: LineSink,
        referentials: Referentials,
        *,
        builder: ContextBuilder | None = None,
        evaluator: RuleEvaluator | None = None,
        applier: OutputApplier | None = None,
        clock: Callable[[], datetime] = _utcnow,
        concurrency: int = 1,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
        on_applied: Callable[[RuleAppliedEvent], Awaitable[None] | None] | None = None,
    ):
        self.rules = rules
        self.lines = lines
        self.sink = sink
        self.referentials = referentials
        self.builder = builder or ContextBuilder(amount_tolerance)
        self.evaluator = evaluator or RuleEvaluator()
        self.applier = applier or OutputApplier()
        self.clock = clock
        self.concurrency = max(1, concurrency)
        self.on_applied = on_applied
        self._target_locks: dict[str, asyncio.Lock] = {}

    # ── Public API ─────────────────────────────────────

    async def run_batch(
        self,
        line_ids: Iterable[str],
        scope: RuleScope,
        *,
        origin: RunOrigin = RunOrigin.RUN_NOW,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult:
        ids = distinct_line_ids(line_ids)
        now = self.clock()
        result = BatchResult(
            run_id=str(uuid.uuid4()),
            scope=scope,
            origin=origin,
            evaluated_at=now,
            requested=len(ids),
        )
        if not ids:
            return result

        try:
            rules = order_rules(await self.rules.load_rules())
            await self.lines.prepare(ids)
        except ConfigurationError as exc:
            result.error = exc.message
            result.failures = [LineFailure(i, exc.kind, exc.message) for i in ids]
            logger.error("batch_aborted", run_id=result.run_id, error=exc.message)
            return result

        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(line_id: str) -> LineOutcome | None:
            async with semaphore:
                if cancel is not None and cancel.is_set():
                    return None
                return await self._process_line(line_id, rules, scope, origin, now)

        if self.concurrency == 1:
            outcomes = []
            for line_id in ids:
                if cancel is not None and cancel.is_set():
                    break
                outcomes.append(await self._process_line(line_id, rules, scope, origin, now))
        else:
            outcomes = await asyncio.gather(*(worker(i) for i in ids))

        for outcome in outcomes:
            if outcome is None:
                continue
            result.outcomes.append(outcome)
            if outcome.status == LineStatus.FAILED:
                result.failures.append(outcome.failure)
            elif outcome.status == LineStatus.UNCLASSIFIED:
                result.unclassified.append(outcome.line_id)
            else:
                result.classified += 1
                if outcome.status == LineStatus.AWAITING_CONFIRMATION:
                    result.awaiting_confirmation.append(outcome.line_id)

        result.cancelled = result.processed < len(ids)
        if result.cancelled:
            logger.warning(
                "batch_cancelled",
                run_id=result.run_id,
                processed=result.processed,
                requested=len(ids),
            )
        logger.info(
            "batch_completed",
            run_id=result.run_id,
            origin=origin.value,
            scope=scope.value,
            requested=result.requested,
            classified=result.classified,
            unclassified=len(result.unclassified),
            failed=result.failed,
        )
        return result

    async def run_line(
        self,
        line_id: str,
        scope: RuleScope = RuleScope.EDIT,
        *,
        origin: RunOrigin = RunOrigin.EDIT,
    ) -> LineOutcome:
        """Reclassify a single line, e.g. right after it was edited."""
        batch = await self.run_batch([line_id], scope, origin=origin)
        if batch.outcomes:
            return batch.outcomes[0]
        failure = batch.failures[0] if batch.failures else LineFailure(line_id, "context", "blank line id")
        return LineOutcome(line_id, LineStatus.FAILED, failure=failure)

    async def evaluate_line(
        self,
        line_id: str,
        scope: RuleScope,
        *,
        diagnostic: bool = False,
    ) -> tuple[EvaluationContext, EvaluationResult]:
        """Read-only evaluation; nothing is applied."""
        rules = order_rules(await self.rules.load_rules())
        await self.lines.prepare([line_id])
        bundle = await self.lines.fetch(line_id)
        context = self.builder.build_bundle(bundle, self.referentials, self.clock())
        return context, self.evaluator.evaluate(context, rules, scope, diagnostic=diagnostic)

    async def debug_line(self, line_id: str, scope: RuleScope = RuleScope.EDIT) -> DebugReport:
        context, evaluation = await self.evaluate_line(line_id, scope, diagnostic=True)
        return DebugReport(line_id=line_id, context=context, trace=evaluation.trace)

    # ── Internals ──────────────────────────────────────

    async def _process_line(
        self,
        line_id: str,
        rules: list[TruthRule],
        scope: RuleScope,
        origin: RunOrigin,
        now: datetime,
    ) -> LineOutcome:
        try:
            return await self._classify_line(line_id, rules, scope, origin, now)
        except RulesEngineError as exc:
            return self._failed(line_id, exc.kind, exc.message)
        except Exception as exc:
            logger.exception("line_failed", line_id=line_id, kind="error", error=str(exc))
            return LineOutcome(
                line_id,
                LineStatus.FAILED,
                failure=LineFailure(line_id, "error", str(exc)),
            )

    async def _classify_line(
        self,
        line_id: str,
        rules: list[TruthRule],
        scope: RuleScope,
        origin: RunOrigin,
        now: datetime,
    ) -> LineOutcome:
        bundle = await self.lines.fetch(line_id)
        context = self.builder.build_bundle(bundle, self.referentials, now)

        evaluation = self.evaluator.evaluate(context, rules, scope)
        if evaluation.trace.is_ambiguous:
            logger.warning(
                "evaluation_ambiguity",
                line_id=line_id,
                winner=evaluation.trace.winner_rule_id,
                also_matched=list(evaluation.trace.ambiguous_rule_ids),
            )

        rule = evaluation.rule
        if rule is None:
            return LineOutcome(line_id, LineStatus.UNCLASSIFIED)
        if not rule.auto_apply:
            return LineOutcome(line_id, LineStatus.AWAITING_CONFIRMATION, rule_id=rule.rule_id)

        classification = await self._apply(rule, line_id, context.counterpart_line_id, now)
        if not classification.is_noop:
            await self._notify(classification, origin, bundle.line.country_id)

        return LineOutcome(line_id, LineStatus.CLASSIFIED, rule_id=rule.rule_id, result=classification)

    def _target_ids(self, rule: TruthRule, line_id: str, counterpart_line_id: str | None) -> list[str]:
        targets = set()
        if rule.apply_to in (ApplyTarget.SELF, ApplyTarget.BOTH):
            targets.add(line_id)
        if rule.apply_to in (ApplyTarget.COUNTERPART, ApplyTarget.BOTH) and counterpart_line_id:
            targets.add(counterpart_line_id)
        return sorted(targets)

    async def _apply(
        self,
        rule: TruthRule,
        line_id: str,
        counterpart_line_id: str | None,
        now: datetime,
    ) -> ClassificationResult:
        """Build and commit the rule's changes while holding every target's lock.

        Target lines are re-read under the lock so appended comments see the
        writes of any line committed before.
        """
        # Locks are taken in sorted order so overlapping target sets cannot deadlock.
        async with AsyncExitStack() as stack:
            for target in self._target_ids(rule, line_id, counterpart_line_id):
                lock = self._target_locks.setdefault(target, asyncio.Lock())
                await stack.enter_async_context(lock)

            fresh = await self.lines.fetch(line_id)
            counterpart = fresh.related.counterpart if counterpart_line_id else None
            classification = self.applier.apply(
                rule,
                fresh.line,
                counterpart,
                applied_at=now,
                referentials=self.referentials,
            )
            if not classification.is_noop:
                await self.sink.commit(classification)
        return classification

    async def _notify(self, classification: ClassificationResult, origin: RunOrigin, country_id: str | None) -> None:
        for line_id in classification.target_line_ids:
            event = RuleAppliedEvent(
                rule_id=classification.rule_id,
                line_id=line_id,
                origin=origin,
                outputs_summary=classification.outputs_summary,
                message=classification.message,
                applied_at=classification.applied_at,
                country_id=country_id,
            )
            logger.info(
                "rule_applied",
                origin=origin.value,
                country_id=country_id,
                line_id=line_id,
                rule_id=classification.rule_id,
                outputs=classification.outputs_summary,
                message=classification.message,
            )
            if self.on_applied is None:
                continue
            # The line is already committed; a failing listener must not fail it.
            try:
                maybe = self.on_applied(event)
                if asyncio.iscoroutine(maybe):
                    await maybe
            except Exception as exc:
                logger.warning(
                    "rule_applied_callback_failed",
                    rule_id=classification.rule_id,
                    line_id=line_id,
                    error=str(exc),
                )

    def _failed(self, line_id: str, kind: str, message: str) -> LineOutcome:
        logger.warning("line_failed", line_id=line_id, kind=kind, error=message)
        return LineOutcome(
            line_id,
            LineStatus.FAILED,
            failure=LineFailure(line_id, kind, message),
        )
