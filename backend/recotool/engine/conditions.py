"""Rule condition variants.

Every condition of a truth-table rule is one of a closed set of variants:

  - ``Wildcard``  don't care, always satisfied
  - ``OneOf``     case-insensitive membership in one or more text tokens
  - ``Flag``      a concrete True/False the context must equal
  - ``Range``     inclusive integer bounds, either side optional
  - ``Equals``    exact equality on a reference value (e.g. an action id)

Parsing helpers turn the flat persisted values ("*", "ISSUANCE;REISSUANCE",
nullable booleans, nullable bounds) into these variants once, when a rule is
compiled, so the evaluator never has to guess what "unset" means.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

WILDCARD_TOKEN = "*"

_LIST_SPLIT = re.compile(r"[;,|]")


def _normalize_token(value: Any) -> str:
    return str(value).strip().upper()


@dataclass(frozen=True)
class Wildcard:
    declared = False

    def check(self, actual: Any) -> bool:
        return True

    def expected(self) -> str:
        return WILDCARD_TOKEN


@dataclass(frozen=True)
class OneOf:
    values: tuple[str, ...]
    declared = True

    def check(self, actual: Any) -> bool:
        if actual is None:
            return False
        token = _normalize_token(actual)
        if not token:
            return False
        return token in self.values

    def expected(self) -> str:
        return ";".join(self.values)


@dataclass(frozen=True)
class Flag:
    value: bool
    declared = True

    def check(self, actual: Any) -> bool:
        # Unknown context facts never satisfy a concrete True/False.
        if actual is None:
            return False
        return bool(actual) == self.value

    def expected(self) -> str:
        return str(self.value).lower()


@dataclass(frozen=True)
class Range:
    minimum: int | None = None
    maximum: int | None = None
    declared = True

    def check(self, actual: Any) -> bool:
        if actual is None:
            return False
        if self.minimum is not None and actual < self.minimum:
            return False
        if self.maximum is not None and actual > self.maximum:
            return False
        return True

    def expected(self) -> str:
        lo = "" if self.minimum is None else str(self.minimum)
        hi = "" if self.maximum is None else str(self.maximum)
        return f"[{lo}..{hi}]"


@dataclass(frozen=True)
class Equals:
    value: Any
    declared = True

    def check(self, actual: Any) -> bool:
        if actual is None:
            return False
        return actual == self.value

    def expected(self) -> str:
        return str(self.value)


Condition = Union[Wildcard, OneOf, Flag, Range, Equals]

WILDCARD = Wildcard()


# ---------------------------------------------------------------------------
# Parsing from persisted values
# ---------------------------------------------------------------------------

def is_wildcard_text(raw: str | None) -> bool:
    return raw is None or not raw.strip() or raw.strip() == WILDCARD_TOKEN


def split_tokens(raw: str) -> tuple[str, ...]:
    """Split a multi-value cell ("ISSU;REISSU", "FR,DE") into normalized tokens."""
    tokens = []
    for part in _LIST_SPLIT.split(raw):
        token = _normalize_token(part)
        if token and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


def text_condition(raw: str | None) -> Condition:
    if is_wildcard_text(raw):
        return WILDCARD
    tokens = split_tokens(raw)
    if not tokens or WILDCARD_TOKEN in tokens:
        return WILDCARD
    return OneOf(tokens)


def flag_condition(raw: bool | None) -> Condition:
    if raw is None:
        return WILDCARD
    return Flag(bool(raw))


def range_condition(minimum: int | None, maximum: int | None) -> Condition:
    if minimum is None and maximum is None:
        return WILDCARD
    return Range(minimum, maximum)


def equals_condition(raw: Any) -> Condition:
    if raw is None:
        return WILDCARD
    if isinstance(raw, str) and is_wildcard_text(raw):
        return WILDCARD
    return Equals(raw)
