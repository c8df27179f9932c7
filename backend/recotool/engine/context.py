"""Evaluation context: the derived fact set one line is classified against."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal

from recotool.core.exceptions import ContextResolutionError
from recotool.engine.lines import LineBundle, LineSnapshot, Referentials, RelatedData
from recotool.engine.normalize import (
    detect_transaction_type,
    normalize_guarantee_type,
    normalize_sign,
    normalize_transaction_type,
)

DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class EvaluationContext:
    line_id: str
    evaluated_at: datetime
    country_id: str | None = None
    account_side: str | None = None
    guarantee_type: str | None = None
    transaction_type: str | None = None
    sign: str | None = None

    has_dwings_link: bool | None = None
    is_grouped: bool | None = None
    is_amount_match: bool | None = None
    is_mt_acked: bool | None = None
    has_comm_id_email: bool | None = None
    is_bgi_initiated: bool | None = None
    trigger_date_is_null: bool | None = None
    is_transitory: bool | None = None
    is_matched: bool | None = None
    has_manual_match: bool | None = None
    is_first_request: bool | None = None

    days_since_trigger: int | None = None
    operation_days_ago: int | None = None
    days_since_reminder: int | None = None

    current_action_id: int | None = None
    payment_request_status: str | None = None

    counterpart_line_id: str | None = None
    counterpart_count: int = 0

    def as_dict(self) -> dict:
        data = asdict(self)
        data["evaluated_at"] = self.evaluated_at.isoformat()
        return data


def days_between(earlier: date | datetime | None, now: datetime) -> int | None:
    """Whole days from ``earlier`` to the evaluation instant, at day granularity."""
    if earlier is None:
        return None
    if isinstance(earlier, datetime):
        earlier = earlier.date()
    return (now.date() - earlier).days


class ContextBuilder:
    """Builds an ``EvaluationContext`` from a line and its related data.

    Pure: no I/O, no mutation. A missing secondary record (guarantee,
    invoice) only blanks the facts derived from it; only an unusable line
    raises ``ContextResolutionError``.
    """

    def __init__(self, amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE):
        self.amount_tolerance = amount_tolerance

    def build_bundle(self, bundle: LineBundle, referentials: Referentials, now: datetime) -> EvaluationContext:
        return self.build(bundle.line, bundle.related, referentials, now)

    def build(
        self,
        line: LineSnapshot,
        related: RelatedData,
        referentials: Referentials,
        now: datetime,
    ) -> EvaluationContext:
        if line is None or not line.line_id:
            raise ContextResolutionError("line has no identifier")
        if line.signed_amount is None:
            raise ContextResolutionError("line has no signed amount", line_id=line.line_id)
        if referentials.country(line.country_id) is None:
            raise ContextResolutionError(
                f"unknown country {line.country_id!r}", line_id=line.line_id
            )

        account_side = referentials.account_side(line.country_id, line.account_id)
        is_pivot = account_side == "P"

        invoice = related.invoice
        guarantee = related.guarantee

        payment_method = invoice.payment_method if invoice else None
        transaction_type = normalize_transaction_type(
            detect_transaction_type(line.raw_label, is_pivot, line.category, payment_method)
        )

        # Guarantee type is a receivable-side fact.
        guarantee_type = None
        if guarantee is not None and not is_pivot:
            guarantee_type = normalize_guarantee_type(guarantee.guarantee_type)

        is_mt_acked = None
        has_comm_id_email = None
        is_bgi_initiated = None
        payment_request_status = None
        if invoice is not None:
            if invoice.mt_status and invoice.mt_status.strip():
                is_mt_acked = invoice.mt_status.strip().upper() == "ACKED"
            has_comm_id_email = invoice.comm_id_email
            if invoice.invoice_status and invoice.invoice_status.strip():
                is_bgi_initiated = invoice.invoice_status.strip().upper() == "INITIATED"
            if invoice.payment_request_status and invoice.payment_request_status.strip():
                payment_request_status = invoice.payment_request_status.strip()

        grouping = related.grouping
        counterpart_line_id = None
        if not grouping.is_ambiguous:
            counterpart_line_id = grouping.counterpart_line_id
        is_amount_match = self._amount_match(line, related)

        has_dwings_link = line.has_dwings_link

        return EvaluationContext(
            line_id=line.line_id,
            evaluated_at=now,
            country_id=line.country_id,
            account_side=account_side,
            guarantee_type=guarantee_type,
            transaction_type=transaction_type,
            sign=normalize_sign("C" if line.signed_amount >= 0 else "D"),
            has_dwings_link=has_dwings_link,
            is_grouped=grouping.is_grouped,
            is_amount_match=is_amount_match,
            is_mt_acked=is_mt_acked,
            has_comm_id_email=has_comm_id_email,
            is_bgi_initiated=is_bgi_initiated,
            trigger_date_is_null=line.trigger_date is None,
            is_transitory=None,
            is_matched=has_dwings_link,
            has_manual_match=line.has_manual_match,
            is_first_request=line.first_claim_date is None,
            days_since_trigger=days_between(line.trigger_date, now),
            operation_days_ago=days_between(line.operation_date, now),
            days_since_reminder=days_between(line.last_claim_date, now),
            current_action_id=line.action_id,
            payment_request_status=payment_request_status,
            counterpart_line_id=counterpart_line_id,
            counterpart_count=grouping.counterpart_count,
        )

    def _amount_match(self, line: LineSnapshot, related: RelatedData) -> bool | None:
        grouping = related.grouping
        # 1:N groupings are never a clean match.
        if grouping.is_ambiguous:
            return False
        counterpart = related.counterpart
        if (
            counterpart is not None
            and grouping.counterpart_line_id
            and counterpart.signed_amount is not None
        ):
            return abs(line.signed_amount + counterpart.signed_amount) < self.amount_tolerance
        return grouping.is_amount_match
