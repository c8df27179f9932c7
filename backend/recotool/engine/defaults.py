"""Default truth table.

Pivot and receivable rules replacing the legacy hard-coded classification.
Seeding upserts them by rule id; rules without any output are skipped.
"""

from recotool.engine.rules import ApplyTarget, RuleDefinition, RuleScope

_IMPORT = {"scope": RuleScope.IMPORT, "enabled": True, "priority": 100, "auto_apply": True}

_RAW_DEFAULTS: list[dict] = [
    # ── Receivable: incoming payments ──
    {
        "rule_id": "Receivable - First Incoming Payment Request",
        "account_side": "R",
        "transaction_type": "INCOMING_PAYMENT",
        "is_first_request": True,
        "output_action_id": 1,
        "output_kpi_id": 16,
        "message": "First claim request - automatic action assigned",
    },
    {
        "rule_id": "Receivable - Issuance Reminder (30+ days)",
        "account_side": "R",
        "guarantee_type": "ISSUANCE",
        "transaction_type": "INCOMING_PAYMENT",
        "days_since_reminder_min": 30,
        "output_action_id": 3,
        "output_kpi_id": 16,
        "message": "Reminder sent automatically via Dwings",
    },
    {
        "rule_id": "Receivable - Reissuance Reminder Acknowledged",
        "account_side": "R",
        "guarantee_type": "REISSUANCE",
        "transaction_type": "INCOMING_PAYMENT",
        "mt_status_acked": True,
        "days_since_reminder_min": 30,
        "output_action_id": 1,
        "output_kpi_id": 16,
        "message": "Invoice identified in the Receivable account by RecoTool",
    },
    {
        "rule_id": "Receivable - Reissuance Reminder Not Acknowledged",
        "account_side": "R",
        "guarantee_type": "REISSUANCE",
        "transaction_type": "INCOMING_PAYMENT",
        "mt_status_acked": False,
        "days_since_reminder_min": 30,
        "output_action_id": 7,
        "output_kpi_id": 17,
        "message": "Reminder required - MT791 not acknowledged (30+ days)",
    },
    {
        "rule_id": "Receivable - Reissuance/Advising MT791 Acknowledged",
        "account_side": "R",
        "guarantee_type": "REISSUANCE;ADVISING",
        "transaction_type": "INCOMING_PAYMENT",
        "mt_status_acked": True,
        "is_first_request": True,
        "output_action_id": 1,
        "output_kpi_id": 16,
        "output_first_claim_today": True,
        "message": "MT791 Sent automatically via Dwings",
    },
    {
        "rule_id": "Receivable - Reissuance/Advising MT791 Not Acknowledged",
        "account_side": "R",
        "guarantee_type": "REISSUANCE;ADVISING",
        "transaction_type": "INCOMING_PAYMENT",
        "mt_status_acked": False,
        "is_first_request": True,
        "output_action_id": 2,
        "output_kpi_id": 17,
        "message": "MT791 not acknowledged - manual follow-up required",
    },
    {
        "rule_id": "Receivable - Issuance with Email",
        "account_side": "R",
        "guarantee_type": "ISSUANCE",
        "transaction_type": "INCOMING_PAYMENT",
        "comm_id_email": True,
        "is_first_request": True,
        "output_action_id": 1,
        "output_kpi_id": 16,
        "output_first_claim_today": True,
        "message": "First claim email sent - awaiting response",
    },
    {
        "rule_id": "Receivable - Issuance without Email",
        "account_side": "R",
        "guarantee_type": "ISSUANCE",
        "transaction_type": "INCOMING_PAYMENT",
        "comm_id_email": False,
        "is_first_request": True,
        "output_action_id": 2,
        "output_kpi_id": 17,
        "message": "No email communication ID - manual claim required",
    },
    # Catch-all with no output: kept for documentation, never seeded.
    {
        "rule_id": "Receivable - Incoming Payment (Other)",
        "account_side": "R",
        "transaction_type": "INCOMING_PAYMENT",
        "priority": 120,
    },
    # ── Receivable: other flows ──
    {
        "rule_id": "Receivable - Direct Debit",
        "account_side": "R",
        "transaction_type": "DIRECT_DEBIT",
        "output_action_id": 7,
        "output_kpi_id": 19,
    },
    {
        "rule_id": "Receivable - Outgoing Payment (Not Initiated)",
        "account_side": "R",
        "transaction_type": "OUTGOING_PAYMENT",
        "bgi_status_initiated": False,
        "output_action_id": 7,
        "output_kpi_id": 22,
    },
    {
        "rule_id": "Receivable - Outgoing Payment (Initiated)",
        "account_side": "R",
        "transaction_type": "OUTGOING_PAYMENT",
        "bgi_status_initiated": True,
        "output_action_id": 5,
        "output_kpi_id": 15,
    },
    {
        "rule_id": "Receivable - External Debit Payment",
        "account_side": "R",
        "transaction_type": "EXTERNAL_DEBIT_PAYMENT",
        "output_action_id": 10,
        "output_kpi_id": 17,
    },
    # ── Pivot ──
    {
        "rule_id": "Pivot - Collection Credit (Grouped)",
        "account_side": "P",
        "transaction_type": "COLLECTION",
        "is_amount_match": True,
        "sign": "C",
        "output_action_id": 4,
        "output_kpi_id": 18,
        "apply_to": ApplyTarget.BOTH,
    },
    {
        "rule_id": "Pivot - Collection Credit (Not Grouped)",
        "account_side": "P",
        "transaction_type": "COLLECTION",
        "sign": "C",
        "output_action_id": 7,
        "output_kpi_id": 18,
        "message": "Collection Credit without amount match - investigation required",
    },
    {
        "rule_id": "Pivot - Collection Debit",
        "account_side": "P",
        "transaction_type": "COLLECTION",
        "sign": "D",
        "output_action_id": 1,
        "output_kpi_id": 19,
    },
    {
        "rule_id": "Pivot - Payment Debit",
        "account_side": "P",
        "transaction_type": "PAYMENT",
        "sign": "D",
        "output_action_id": 13,
        "output_kpi_id": 21,
    },
    {
        "rule_id": "Pivot - Payment Credit",
        "account_side": "P",
        "transaction_type": "PAYMENT",
        "sign": "C",
        "output_action_id": 7,
        "output_kpi_id": 22,
    },
    {
        "rule_id": "Pivot - Adjustment",
        "account_side": "P",
        "transaction_type": "ADJUSTMENT",
        "output_action_id": 1,
        "output_kpi_id": 18,
    },
    {
        "rule_id": "Pivot - XCL Loader & Trigger",
        "account_side": "P",
        "transaction_type": "XCL_LOADER;TRIGGER",
        "output_action_id": 6,
        "output_kpi_id": 18,
    },
    {
        "rule_id": "Pivot - Manual Outgoing",
        "account_side": "P",
        "transaction_type": "MANUAL_OUTGOING",
        "output_action_id": 4,
        "output_kpi_id": 15,
    },
]


def default_rules() -> list[RuleDefinition]:
    """The seedable default rules (only those that set at least one output)."""
    rules = [RuleDefinition(**{**_IMPORT, **raw}) for raw in _RAW_DEFAULTS]
    return [rule for rule in rules if rule.has_outputs()]
