"""DWINGS guarantee and invoice records (read-only copies of the external system)."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from recotool.models.base import Base


class DwingsGuarantee(Base):
    __tablename__ = "dwings_guarantees"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    guarantee_type: Mapped[str | None] = mapped_column(String(50), nullable=True)


class DwingsInvoice(Base):
    __tablename__ = "dwings_invoices"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    mt_status: Mapped[str | None] = mapped_column(String(20), nullable=True)  # ACKED, NACK, ...
    comm_id_email: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    invoice_status: Mapped[str | None] = mapped_column(String(30), nullable=True)  # T_INVOICE_STATUS
    payment_request_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
