"""Create referential, DWINGS, accounting line and reconciliation tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Referentials ──────────────────────────────────
    op.create_table(
        "countries",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("pivot_account_id", sa.String(50), nullable=True),
        sa.Column("receivable_account_id", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "user_fields",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_fields_category", "user_fields", ["category"])

    # ── DWINGS ────────────────────────────────────────
    op.create_table(
        "dwings_guarantees",
        sa.Column("id", sa.String(50), nullable=False),
        sa.Column("guarantee_type", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "dwings_invoices",
        sa.Column("id", sa.String(50), nullable=False),
        sa.Column("mt_status", sa.String(20), nullable=True),
        sa.Column("comm_id_email", sa.Boolean(), nullable=True),
        sa.Column("invoice_status", sa.String(30), nullable=True),
        sa.Column("payment_request_status", sa.String(50), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Accounting lines ──────────────────────────────
    op.create_table(
        "accounting_lines",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("country_id", sa.String(10), nullable=False),
        sa.Column("account_id", sa.String(50), nullable=True),
        sa.Column("signed_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("operation_date", sa.Date(), nullable=True),
        sa.Column("raw_label", sa.String(500), nullable=True),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_accounting_lines_country", "accounting_lines", ["country_id"])

    # ── Reconciliation state ──────────────────────────
    op.create_table(
        "reconciliations",
        sa.Column("id", sa.String(64), sa.ForeignKey("accounting_lines.id"), nullable=False),
        sa.Column("dwings_invoice_id", sa.String(50), nullable=True),
        sa.Column("dwings_guarantee_id", sa.String(50), nullable=True),
        sa.Column("dwings_commission_id", sa.String(50), nullable=True),
        sa.Column("action_id", sa.Integer(), nullable=True),
        sa.Column("action_status", sa.String(20), nullable=True),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("kpi_id", sa.Integer(), nullable=True),
        sa.Column("incident_type_id", sa.Integer(), nullable=True),
        sa.Column("risky_item", sa.Boolean(), nullable=True),
        sa.Column("reason_non_risky_id", sa.Integer(), nullable=True),
        sa.Column("to_remind", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("to_remind_date", sa.Date(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("trigger_date", sa.Date(), nullable=True),
        sa.Column("first_claim_date", sa.Date(), nullable=True),
        sa.Column("last_claim_date", sa.Date(), nullable=True),
        sa.Column("has_manual_match", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("reconciliations")
    op.drop_index("idx_accounting_lines_country")
    op.drop_table("accounting_lines")
    op.drop_table("dwings_invoices")
    op.drop_table("dwings_guarantees")
    op.drop_index("idx_user_fields_category")
    op.drop_table("user_fields")
    op.drop_table("countries")
