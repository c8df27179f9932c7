"""Create the truth-table rules table.

Column names are shared with existing rule stores; later changes to this
table must only add nullable columns.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

_FLAG_COLUMNS = [
    "HasDwingsLink", "IsGrouped", "IsAmountMatch", "MTStatusAcked", "CommIdEmail",
    "BgiStatusInitiated", "TriggerDateIsNull", "IsTransitory", "IsMatched",
    "HasManualMatch", "IsFirstRequest",
]
_INT_COLUMNS = [
    "DaysSinceTriggerMin", "DaysSinceTriggerMax", "OperationDaysAgoMin", "OperationDaysAgoMax",
    "DaysSinceReminderMin", "DaysSinceReminderMax", "CurrentActionId",
]
_OUTPUT_INT_COLUMNS = [
    "OutputActionId", "OutputKpiId", "OutputIncidentTypeId", "OutputReasonNonRiskyId", "OutputToRemindDays",
]
_OUTPUT_FLAG_COLUMNS = ["OutputRiskyItem", "OutputToRemind", "OutputFirstClaimToday"]


def upgrade() -> None:
    op.create_table(
        "T_Reco_Rules",
        sa.Column("RuleId", sa.String(255), nullable=False),
        sa.Column("Enabled", sa.Boolean(), server_default=sa.text("true"), nullable=True),
        sa.Column("Priority", sa.Integer(), server_default="100", nullable=True),
        sa.Column("Scope", sa.String(20), server_default="Both", nullable=True),
        sa.Column("AccountSide", sa.String(10), server_default="*", nullable=True),
        sa.Column("Booking", sa.String(255), nullable=True),
        sa.Column("GuaranteeType", sa.String(255), nullable=True),
        sa.Column("TransactionType", sa.String(255), nullable=True),
        sa.Column("Sign", sa.String(5), server_default="*", nullable=True),
        sa.Column("MTStatus", sa.String(20), nullable=True),
        sa.Column("PaymentRequestStatus", sa.String(100), nullable=True),
        *(sa.Column(name, sa.Boolean(), nullable=True) for name in _FLAG_COLUMNS),
        *(sa.Column(name, sa.Integer(), nullable=True) for name in _INT_COLUMNS),
        *(sa.Column(name, sa.Integer(), nullable=True) for name in _OUTPUT_INT_COLUMNS),
        *(sa.Column(name, sa.Boolean(), nullable=True) for name in _OUTPUT_FLAG_COLUMNS),
        sa.Column("ApplyTo", sa.String(20), server_default="Self", nullable=True),
        sa.Column("AutoApply", sa.Boolean(), server_default=sa.text("true"), nullable=True),
        sa.Column("Message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("RuleId"),
    )


def downgrade() -> None:
    op.drop_table("T_Reco_Rules")
