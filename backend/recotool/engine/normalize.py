"""Normalization of raw line attributes into the vocabulary rules are written in."""

from enum import Enum


class TransactionType(str, Enum):
    COLLECTION = "COLLECTION"
    PAYMENT = "PAYMENT"
    ADJUSTMENT = "ADJUSTMENT"
    XCL_LOADER = "XCL_LOADER"
    TRIGGER = "TRIGGER"
    MANUAL_OUTGOING = "MANUAL_OUTGOING"
    INCOMING_PAYMENT = "INCOMING_PAYMENT"
    DIRECT_DEBIT = "DIRECT_DEBIT"
    OUTGOING_PAYMENT = "OUTGOING_PAYMENT"
    EXTERNAL_DEBIT_PAYMENT = "EXTERNAL_DEBIT_PAYMENT"
    TO_CATEGORIZE = "TO_CATEGORIZE"


# Label keyword → transaction type, checked in order (pivot side only).
_PIVOT_LABEL_KEYWORDS: tuple[tuple[str, TransactionType], ...] = (
    ("COLLECTION", TransactionType.COLLECTION),
    ("AUTOMATIC REFUND", TransactionType.PAYMENT),
    ("PAYMENT", TransactionType.PAYMENT),
    ("ADJUSTMENT", TransactionType.ADJUSTMENT),
    ("XCL LOADER", TransactionType.XCL_LOADER),
    ("TRIGGER", TransactionType.TRIGGER),
)


def normalize_sign(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip().upper()
    if value.startswith("D"):
        return "D"
    if value.startswith("C"):
        return "C"
    return value


def normalize_guarantee_type(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip().upper()
    if value.startswith("REISSU"):
        return "REISSUANCE"
    if value.startswith("ISSU"):
        return "ISSUANCE"
    if value.startswith("NOTIF") or value.startswith("ADVISING"):
        return "ADVISING"
    return value


def normalize_transaction_type(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    return raw.strip().upper().replace(" ", "_")


def detect_transaction_type(
    label: str | None,
    is_pivot: bool,
    category: str | None = None,
    payment_method: str | None = None,
) -> str | None:
    """Derive the transaction type name of a line.

    Pivot lines carry it in their imported category, with a label-keyword
    fallback. Receivable lines take it from the linked invoice's payment
    method; labels are not reliable enough on that side.
    """
    upper_label = (label or "").upper()

    if is_pivot:
        if category and category.strip():
            return normalize_transaction_type(category)
        if not upper_label.strip() or "TO CATEGORIZE" in upper_label:
            return TransactionType.TO_CATEGORIZE.value
        for keyword, tx_type in _PIVOT_LABEL_KEYWORDS:
            if keyword in upper_label:
                return tx_type.value
        return TransactionType.TO_CATEGORIZE.value

    method = normalize_transaction_type(payment_method)
    if method and method in TransactionType.__members__:
        return method
    if "TO CATEGORIZE" in upper_label:
        return TransactionType.TO_CATEGORIZE.value
    return None
