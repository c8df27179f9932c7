"""SQL-backed line source and sink for the batch runner.

``prepare`` loads the requested lines, every live line of their countries
(for grouping), and the DWINGS records they reference, into immutable
snapshots. ``fetch`` serves bundles from that snapshot; ``commit`` writes one
classification result per transaction.
"""

import asyncio
import dataclasses
from collections.abc import Sequence
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.core.exceptions import ApplicationError, ArchivedLineError, ContextResolutionError
from recotool.engine.applier import ClassificationResult
from recotool.engine.lines import (
    GroupingFact,
    GuaranteeRecord,
    InvoiceRecord,
    LineBundle,
    LineSnapshot,
    Referentials,
    RelatedData,
)
from recotool.models.accounting_line import AccountingLine
from recotool.models.dwings import DwingsGuarantee, DwingsInvoice
from recotool.models.reconciliation import Reconciliation
from recotool.services.grouping_service import build_grouping

logger = structlog.get_logger()


def line_snapshot(line: AccountingLine, reco: Reconciliation | None) -> LineSnapshot:
    """Join an accounting line with its (possibly missing) reconciliation row."""
    fields = {}
    if reco is not None:
        fields = {
            "dwings_invoice_id": reco.dwings_invoice_id,
            "dwings_guarantee_id": reco.dwings_guarantee_id,
            "dwings_commission_id": reco.dwings_commission_id,
            "trigger_date": reco.trigger_date,
            "first_claim_date": reco.first_claim_date,
            "last_claim_date": reco.last_claim_date,
            "has_manual_match": reco.has_manual_match,
            "action_id": reco.action_id,
            "action_status": reco.action_status,
            "action_date": reco.action_date,
            "kpi_id": reco.kpi_id,
            "incident_type_id": reco.incident_type_id,
            "risky_item": reco.risky_item,
            "reason_non_risky_id": reco.reason_non_risky_id,
            "to_remind": bool(reco.to_remind),
            "to_remind_date": reco.to_remind_date,
            "comments": reco.comments,
        }
    return LineSnapshot(
        line_id=line.id,
        account_id=line.account_id,
        country_id=line.country_id,
        signed_amount=line.signed_amount,
        currency=line.currency,
        operation_date=line.operation_date,
        raw_label=line.raw_label,
        category=line.category,
        is_deleted=line.deleted_at is not None,
        **fields,
    )


class SqlLineStore:
    def __init__(
        self,
        db: AsyncSession,
        referentials: Referentials,
        amount_tolerance: Decimal = Decimal("0.01"),
    ):
        self.db = db
        self.referentials = referentials
        self.amount_tolerance = amount_tolerance
        self._snapshots: dict[str, LineSnapshot] = {}
        self._guarantees: dict[str, GuaranteeRecord] = {}
        self._invoices: dict[str, InvoiceRecord] = {}
        self._grouping: dict[str, GroupingFact] = {}
        # One AsyncSession cannot run concurrent operations.
        self._lock = asyncio.Lock()

    # ── LineSource ─────────────────────────────────────

    async def prepare(self, line_ids: Sequence[str]) -> None:
        async with self._lock:
            rows = await self._load_lines(AccountingLine.id.in_(list(line_ids)))
            countries = {line.country_id for line, _ in rows if line.country_id}
            if countries:
                rows += await self._load_lines(
                    AccountingLine.country_id.in_(sorted(countries)),
                    AccountingLine.deleted_at.is_(None),
                )

            for line, reco in rows:
                self._snapshots[line.id] = line_snapshot(line, reco)

            await self._load_dwings(self._snapshots.values())

        self._grouping = build_grouping(
            self._snapshots.values(), self.referentials, self.amount_tolerance
        )
        logger.debug(
            "lines_prepared",
            requested=len(line_ids),
            loaded=len(self._snapshots),
            countries=sorted(countries),
        )

    async def fetch(self, line_id: str) -> LineBundle:
        line = self._snapshots.get(line_id)
        if line is None:
            raise ContextResolutionError(f"line {line_id!r} not found", line_id=line_id)
        if line.is_deleted:
            raise ArchivedLineError(f"line {line_id!r} is archived", line_id=line_id)

        grouping = self._grouping.get(line_id, GroupingFact())
        counterpart = None
        if grouping.counterpart_line_id:
            counterpart = self._snapshots.get(grouping.counterpart_line_id)

        related = RelatedData(
            guarantee=self._guarantees.get((line.dwings_guarantee_id or "").upper()),
            invoice=self._invoices.get((line.dwings_invoice_id or "").upper()),
            grouping=grouping,
            counterpart=counterpart,
        )
        return LineBundle(line=line, related=related)

    # ── LineSink ───────────────────────────────────────

    async def commit(self, result: ClassificationResult) -> None:
        async with self._lock:
            try:
                for mutation in result.mutations:
                    row = await self.db.get(Reconciliation, mutation.line_id)
                    if row is None:
                        row = Reconciliation(id=mutation.line_id, to_remind=False)
                        self.db.add(row)
                    mutation.merge_into(row)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise ApplicationError(
                    f"could not persist rule {result.rule_id!r}: {e}",
                    line_id=result.origin_line_id,
                ) from e

            for mutation in result.mutations:
                snapshot = self._snapshots.get(mutation.line_id)
                if snapshot is not None:
                    self._snapshots[mutation.line_id] = dataclasses.replace(snapshot, **mutation.changes)

    # ── Loading ────────────────────────────────────────

    async def _load_lines(self, *criteria) -> list[tuple[AccountingLine, Reconciliation | None]]:
        result = await self.db.execute(
            select(AccountingLine, Reconciliation)
            .outerjoin(Reconciliation, Reconciliation.id == AccountingLine.id)
            .where(*criteria)
        )
        return [(line, reco) for line, reco in result.all()]

    async def _load_dwings(self, snapshots) -> None:
        guarantee_ids = {s.dwings_guarantee_id.upper() for s in snapshots if s.dwings_guarantee_id}
        invoice_ids = {s.dwings_invoice_id.upper() for s in snapshots if s.dwings_invoice_id}

        if guarantee_ids:
            result = await self.db.execute(
                select(DwingsGuarantee).where(
                    func.upper(DwingsGuarantee.id).in_(sorted(guarantee_ids))
                )
            )
            for g in result.scalars().all():
                self._guarantees[g.id.upper()] = GuaranteeRecord(g.id, g.guarantee_type)

        if invoice_ids:
            result = await self.db.execute(
                select(DwingsInvoice).where(
                    func.upper(DwingsInvoice.id).in_(sorted(invoice_ids))
                )
            )
            for inv in result.scalars().all():
                self._invoices[inv.id.upper()] = InvoiceRecord(
                    invoice_id=inv.id,
                    mt_status=inv.mt_status,
                    comm_id_email=inv.comm_id_email,
                    invoice_status=inv.invoice_status,
                    payment_request_status=inv.payment_request_status,
                    payment_method=inv.payment_method,
                )
