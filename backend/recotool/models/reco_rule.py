"""Truth-table rule storage.

One row per rule. Column names follow the shared rules table
(``RuleId``, ``AccountSide``, ``OutputActionId`` ...); attribute names are
the snake_case field names of ``RuleDefinition``.
"""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recotool.config import settings
from recotool.models.base import Base, TimestampMixin


class RecoRule(Base, TimestampMixin):
    __tablename__ = settings.rules_table_name

    rule_id: Mapped[str] = mapped_column("RuleId", String(255), primary_key=True)
    enabled: Mapped[bool | None] = mapped_column("Enabled", Boolean, default=True)
    priority: Mapped[int | None] = mapped_column("Priority", Integer, default=100)
    scope: Mapped[str | None] = mapped_column("Scope", String(20), default="Both")

    # Conditions
    account_side: Mapped[str | None] = mapped_column("AccountSide", String(10), default="*")
    booking: Mapped[str | None] = mapped_column("Booking", String(255), nullable=True)
    guarantee_type: Mapped[str | None] = mapped_column("GuaranteeType", String(255), nullable=True)
    transaction_type: Mapped[str | None] = mapped_column("TransactionType", String(255), nullable=True)
    has_dwings_link: Mapped[bool | None] = mapped_column("HasDwingsLink", Boolean, nullable=True)
    is_grouped: Mapped[bool | None] = mapped_column("IsGrouped", Boolean, nullable=True)
    is_amount_match: Mapped[bool | None] = mapped_column("IsAmountMatch", Boolean, nullable=True)
    sign: Mapped[str | None] = mapped_column("Sign", String(5), default="*")
    mt_status: Mapped[str | None] = mapped_column("MTStatus", String(20), nullable=True)  # legacy text form
    mt_status_acked: Mapped[bool | None] = mapped_column("MTStatusAcked", Boolean, nullable=True)
    comm_id_email: Mapped[bool | None] = mapped_column("CommIdEmail", Boolean, nullable=True)
    bgi_status_initiated: Mapped[bool | None] = mapped_column("BgiStatusInitiated", Boolean, nullable=True)
    trigger_date_is_null: Mapped[bool | None] = mapped_column("TriggerDateIsNull", Boolean, nullable=True)
    days_since_trigger_min: Mapped[int | None] = mapped_column("DaysSinceTriggerMin", Integer, nullable=True)
    days_since_trigger_max: Mapped[int | None] = mapped_column("DaysSinceTriggerMax", Integer, nullable=True)
    is_transitory: Mapped[bool | None] = mapped_column("IsTransitory", Boolean, nullable=True)
    operation_days_ago_min: Mapped[int | None] = mapped_column("OperationDaysAgoMin", Integer, nullable=True)
    operation_days_ago_max: Mapped[int | None] = mapped_column("OperationDaysAgoMax", Integer, nullable=True)
    is_matched: Mapped[bool | None] = mapped_column("IsMatched", Boolean, nullable=True)
    has_manual_match: Mapped[bool | None] = mapped_column("HasManualMatch", Boolean, nullable=True)
    is_first_request: Mapped[bool | None] = mapped_column("IsFirstRequest", Boolean, nullable=True)
    days_since_reminder_min: Mapped[int | None] = mapped_column("DaysSinceReminderMin", Integer, nullable=True)
    days_since_reminder_max: Mapped[int | None] = mapped_column("DaysSinceReminderMax", Integer, nullable=True)
    current_action_id: Mapped[int | None] = mapped_column("CurrentActionId", Integer, nullable=True)
    payment_request_status: Mapped[str | None] = mapped_column("PaymentRequestStatus", String(100), nullable=True)

    # Outputs
    output_action_id: Mapped[int | None] = mapped_column("OutputActionId", Integer, nullable=True)
    output_kpi_id: Mapped[int | None] = mapped_column("OutputKpiId", Integer, nullable=True)
    output_incident_type_id: Mapped[int | None] = mapped_column("OutputIncidentTypeId", Integer, nullable=True)
    output_risky_item: Mapped[bool | None] = mapped_column("OutputRiskyItem", Boolean, nullable=True)
    output_reason_non_risky_id: Mapped[int | None] = mapped_column("OutputReasonNonRiskyId", Integer, nullable=True)
    output_to_remind: Mapped[bool | None] = mapped_column("OutputToRemind", Boolean, nullable=True)
    output_to_remind_days: Mapped[int | None] = mapped_column("OutputToRemindDays", Integer, nullable=True)
    output_first_claim_today: Mapped[bool | None] = mapped_column("OutputFirstClaimToday", Boolean, nullable=True)

    apply_to: Mapped[str | None] = mapped_column("ApplyTo", String(20), default="Self")
    auto_apply: Mapped[bool | None] = mapped_column("AutoApply", Boolean, default=True)
    message: Mapped[str | None] = mapped_column("Message", Text, nullable=True)
