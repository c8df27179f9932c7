"""Referential catalogs: countries and user fields (actions, KPIs, incident types)."""

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from recotool.models.base import Base


class Country(Base):
    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pivot_account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    receivable_account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)


class UserField(Base):
    __tablename__ = "user_fields"

    ACTION = "Action"
    KPI = "KPI"
    INCIDENT_TYPE = "Incident Type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)  # Action, KPI, Incident Type
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        Index("idx_user_fields_category", "category"),
    )
