"""Reconciliation classification service.

Wires the rule repository, referentials and SQL line store into the batch
runner and exposes the caller-facing operations: run-now, import pass,
single-line edit pass, debug trace and edit preview.
"""

import asyncio
from collections.abc import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.config import settings
from recotool.engine.context import EvaluationContext
from recotool.engine.evaluator import EvaluationResult
from recotool.engine.rules import RuleScope
from recotool.engine.runner import BatchResult, BatchRunner, DebugReport, LineOutcome, RunOrigin
from recotool.models.accounting_line import AccountingLine
from recotool.services.line_store import SqlLineStore
from recotool.services.notifications import RuleAppliedPublisher, rule_applied_publisher
from recotool.services.referential_service import ReferentialService
from recotool.services.rule_service import RuleService

logger = structlog.get_logger()


class ReconciliationService:
    def __init__(self, db: AsyncSession, publisher: RuleAppliedPublisher | None = None):
        self.db = db
        self.publisher = publisher or rule_applied_publisher

    async def _runner(self) -> BatchRunner:
        referentials = await ReferentialService(self.db).load()
        store = SqlLineStore(self.db, referentials, settings.rules_amount_match_tolerance)
        return BatchRunner(
            RuleService(self.db),
            store,
            store,
            referentials,
            concurrency=settings.rules_batch_concurrency,
            amount_tolerance=settings.rules_amount_match_tolerance,
            on_applied=self.publisher.publish,
        )

    # ── Classification passes ──────────────────────────

    async def run_rules_now(
        self,
        line_ids: Iterable[str],
        scope: RuleScope = RuleScope.EDIT,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult:
        """Explicit bulk reclassification of the given lines."""
        runner = await self._runner()
        return await runner.run_batch(line_ids, scope, origin=RunOrigin.RUN_NOW, cancel=cancel)

    async def apply_import_rules(self, country_id: str, cancel: asyncio.Event | None = None) -> BatchResult:
        """Classify every live line of a country with Import-scoped rules."""
        result = await self.db.execute(
            select(AccountingLine.id)
            .where(
                AccountingLine.country_id == country_id,
                AccountingLine.deleted_at.is_(None),
            )
            .order_by(AccountingLine.id)
        )
        line_ids = list(result.scalars().all())
        logger.info("import_rules_started", country_id=country_id, lines=len(line_ids))

        runner = await self._runner()
        return await runner.run_batch(line_ids, RuleScope.IMPORT, origin=RunOrigin.IMPORT, cancel=cancel)

    async def reclassify_line(self, line_id: str) -> LineOutcome:
        """Edit-scoped reclassification of one line, right after it was edited."""
        runner = await self._runner()
        return await runner.run_line(line_id, RuleScope.EDIT, origin=RunOrigin.EDIT)

    # ── Read-only evaluation ───────────────────────────

    async def evaluate_for_debug(self, line_id: str, scope: RuleScope = RuleScope.EDIT) -> DebugReport:
        """Context plus full diagnostic trace; nothing is applied."""
        runner = await self._runner()
        return await runner.debug_line(line_id, scope)

    async def preview_rules_for_edit(self, line_id: str) -> tuple[EvaluationContext, EvaluationResult]:
        """What the Edit-scoped rules would do to this line, without applying it."""
        runner = await self._runner()
        return await runner.evaluate_line(line_id, RuleScope.EDIT)
