"""Condition parsing and normalization tests."""

from recotool.engine.conditions import (
    WILDCARD,
    Flag,
    OneOf,
    Range,
    flag_condition,
    range_condition,
    split_tokens,
    text_condition,
)
from recotool.engine.normalize import (
    detect_transaction_type,
    normalize_guarantee_type,
    normalize_sign,
    normalize_transaction_type,
)


def test_wildcard_text_parses_to_wildcard():
    for raw in (None, "", "  ", "*", " * "):
        assert text_condition(raw) is WILDCARD


def test_multi_value_text_splits_on_all_separators():
    assert split_tokens("issuance; Reissuance,ADVISING|issuance") == ("ISSUANCE", "REISSUANCE", "ADVISING")
    cond = text_condition("FR;DE")
    assert isinstance(cond, OneOf)
    assert cond.check("fr")
    assert cond.check("DE")
    assert not cond.check("IT")
    assert not cond.check(None)


def test_list_containing_wildcard_is_wildcard():
    assert text_condition("FR;*") is WILDCARD


def test_flag_requires_known_value():
    assert flag_condition(None) is WILDCARD
    cond = flag_condition(False)
    assert cond == Flag(False)
    assert cond.check(False)
    assert not cond.check(True)
    assert not cond.check(None)


def test_range_bounds_are_inclusive():
    cond = range_condition(5, 10)
    assert cond == Range(5, 10)
    assert cond.check(5)
    assert cond.check(10)
    assert not cond.check(4)
    assert not cond.check(11)


def test_range_with_one_bound():
    assert range_condition(30, None).check(1000)
    assert not range_condition(30, None).check(29)
    assert range_condition(None, 0).check(-3)


def test_range_rejects_missing_value():
    assert range_condition(None, None) is WILDCARD
    assert not range_condition(0, None).check(None)


def test_wildcard_not_declared():
    assert not WILDCARD.declared
    assert text_condition("P").declared


def test_normalize_sign():
    assert normalize_sign("credit") == "C"
    assert normalize_sign(" d ") == "D"
    assert normalize_sign("") is None


def test_normalize_guarantee_type_synonyms():
    assert normalize_guarantee_type("Reissued") == "REISSUANCE"
    assert normalize_guarantee_type("issuance") == "ISSUANCE"
    assert normalize_guarantee_type("NOTIFICATION") == "ADVISING"
    assert normalize_guarantee_type("advising") == "ADVISING"
    assert normalize_guarantee_type("OTHER") == "OTHER"
    assert normalize_guarantee_type(None) is None


def test_normalize_transaction_type():
    assert normalize_transaction_type("incoming payment") == "INCOMING_PAYMENT"
    assert normalize_transaction_type("  ") is None


def test_detect_transaction_type_pivot():
    assert detect_transaction_type("anything", True, category="Manual Outgoing") == "MANUAL_OUTGOING"
    assert detect_transaction_type("AUTOMATIC REFUND 123", True) == "PAYMENT"
    assert detect_transaction_type("xcl loader batch", True) == "XCL_LOADER"
    assert detect_transaction_type("random", True) == "TO_CATEGORIZE"
    assert detect_transaction_type(None, True) == "TO_CATEGORIZE"


def test_detect_transaction_type_receivable():
    assert detect_transaction_type("x", False, payment_method="Direct Debit") == "DIRECT_DEBIT"
    assert detect_transaction_type("x", False, payment_method="CHEQUE") is None
    assert detect_transaction_type("TO CATEGORIZE", False) == "TO_CATEGORIZE"
    assert detect_transaction_type("COLLECTION", False) is None
