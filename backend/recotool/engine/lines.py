"""Read-only inputs consumed by the engine.

These snapshots are produced by the persistence/import and grouping
collaborators; the engine never reads storage on its own.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class ActionStatus(str, Enum):
    PENDING = "PENDING"
    DONE = "DONE"


@dataclass(frozen=True)
class LineSnapshot:
    """One reconciliation line: accounting data joined with its reconciliation state."""
    line_id: str
    account_id: str | None
    country_id: str | None
    signed_amount: Decimal | None
    currency: str | None = None
    operation_date: date | None = None
    raw_label: str | None = None
    category: str | None = None
    is_deleted: bool = False

    dwings_invoice_id: str | None = None
    dwings_guarantee_id: str | None = None
    dwings_commission_id: str | None = None

    trigger_date: date | None = None
    first_claim_date: date | None = None
    last_claim_date: date | None = None
    has_manual_match: bool | None = None

    action_id: int | None = None
    action_status: ActionStatus | None = None
    action_date: datetime | None = None
    kpi_id: int | None = None
    incident_type_id: int | None = None
    risky_item: bool | None = None
    reason_non_risky_id: int | None = None
    to_remind: bool = False
    to_remind_date: date | None = None
    comments: str | None = None

    @property
    def has_dwings_link(self) -> bool:
        return any(
            ref is not None and ref.strip()
            for ref in (self.dwings_invoice_id, self.dwings_guarantee_id, self.dwings_commission_id)
        )


@dataclass(frozen=True)
class GuaranteeRecord:
    guarantee_id: str
    guarantee_type: str | None = None


@dataclass(frozen=True)
class InvoiceRecord:
    invoice_id: str
    mt_status: str | None = None
    comm_id_email: bool | None = None
    invoice_status: str | None = None
    payment_request_status: str | None = None
    payment_method: str | None = None


@dataclass(frozen=True)
class GroupingFact:
    """Cross-ledger matching result for one line, as supplied by the grouping step."""
    counterpart_line_id: str | None = None
    is_grouped: bool = False
    is_amount_match: bool | None = None
    counterpart_count: int = 0

    @property
    def is_ambiguous(self) -> bool:
        return self.counterpart_count > 1


@dataclass(frozen=True)
class RelatedData:
    guarantee: GuaranteeRecord | None = None
    invoice: InvoiceRecord | None = None
    grouping: GroupingFact = field(default_factory=GroupingFact)
    counterpart: LineSnapshot | None = None


@dataclass(frozen=True)
class LineBundle:
    """Everything needed to classify one line."""
    line: LineSnapshot
    related: RelatedData = field(default_factory=RelatedData)


@dataclass(frozen=True)
class CountryAccounts:
    country_id: str
    pivot_account_id: str | None
    receivable_account_id: str | None


@dataclass(frozen=True)
class Referentials:
    """Referential catalogs passed explicitly into context building and application."""
    countries: Mapping[str, CountryAccounts] = field(default_factory=dict)
    actions: Mapping[int, str] = field(default_factory=dict)
    kpis: Mapping[int, str] = field(default_factory=dict)
    incident_types: Mapping[int, str] = field(default_factory=dict)
    na_action_ids: frozenset[int] = frozenset()

    def country(self, country_id: str | None) -> CountryAccounts | None:
        if not country_id:
            return None
        found = self.countries.get(country_id)
        if found is not None:
            return found
        for key, value in self.countries.items():
            if key.lower() == country_id.lower():
                return value
        return None

    def account_side(self, country_id: str | None, account_id: str | None) -> str | None:
        """'P' for the country's pivot account, 'R' for its receivable account."""
        country = self.country(country_id)
        if country is None or not account_id:
            return None
        account = account_id.strip().lower()
        if country.pivot_account_id and country.pivot_account_id.strip().lower() == account:
            return "P"
        if country.receivable_account_id and country.receivable_account_id.strip().lower() == account:
            return "R"
        return None

    def is_na_action(self, action_id: int | None) -> bool:
        if action_id is None:
            return True
        return action_id in self.na_action_ids

    def action_name(self, action_id: int | None) -> str | None:
        if action_id is None:
            return None
        return self.actions.get(action_id)

    def kpi_name(self, kpi_id: int | None) -> str | None:
        if kpi_id is None:
            return None
        return self.kpis.get(kpi_id)

    def incident_type_name(self, incident_type_id: int | None) -> str | None:
        if incident_type_id is None:
            return None
        return self.incident_types.get(incident_type_id)
