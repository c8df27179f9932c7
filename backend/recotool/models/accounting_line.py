"""Imported accounting line (one row of either the pivot or the receivable ledger)."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recotool.models.base import Base, SoftDeleteMixin, TimestampMixin


class AccountingLine(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "accounting_lines"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    country_id: Mapped[str] = mapped_column(String(10), nullable=False)
    account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    signed_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    operation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    raw_label: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)  # pivot transaction type, as imported

    reconciliation = relationship("Reconciliation", back_populates="line", uselist=False)

    __table_args__ = (
        Index("idx_accounting_lines_country", "country_id"),
    )
