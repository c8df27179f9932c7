"""Reconciliation state of one accounting line (user- and rule-maintained)."""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recotool.engine.lines import ActionStatus
from recotool.models.base import Base, TimestampMixin


class Reconciliation(Base, TimestampMixin):
    __tablename__ = "reconciliations"

    id: Mapped[str] = mapped_column(ForeignKey("accounting_lines.id"), primary_key=True)

    # DWINGS links
    dwings_invoice_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dwings_guarantee_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dwings_commission_id: Mapped[str | None] = mapped_column(String(50), nullable=True)  # BGPMT

    # Classification
    action_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action_status: Mapped[ActionStatus | None] = mapped_column(
        Enum(ActionStatus, native_enum=False, length=20), nullable=True
    )
    action_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    kpi_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    incident_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    risky_item: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    reason_non_risky_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    to_remind: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    to_remind_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Follow-up
    trigger_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    first_claim_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_claim_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    has_manual_match: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    line = relationship("AccountingLine", back_populates="reconciliation")
