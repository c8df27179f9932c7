"""SQLAlchemy models."""

from recotool.models.accounting_line import AccountingLine
from recotool.models.base import Base
from recotool.models.dwings import DwingsGuarantee, DwingsInvoice
from recotool.models.reco_rule import RecoRule
from recotool.models.reconciliation import Reconciliation
from recotool.models.referential import Country, UserField

__all__ = [
    "Base",
    "AccountingLine",
    "Reconciliation",
    "RecoRule",
    "DwingsGuarantee",
    "DwingsInvoice",
    "Country",
    "UserField",
]
