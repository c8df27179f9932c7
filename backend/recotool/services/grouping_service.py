"""Cross-ledger grouping: pairs pivot and receivable lines sharing a DWINGS reference.

Lines are grouped by their strongest DWINGS reference (BGPMT, then invoice,
then guarantee). A group is "grouped" when it holds at least one pivot and one
receivable line; it is an amount match when the pivot and receivable sums
cancel out within tolerance. A line's counterpart is the single line on the
opposite side of its group; several opposite lines make the grouping ambiguous.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from recotool.engine.lines import GroupingFact, LineSnapshot, Referentials


def dwings_group_key(line: LineSnapshot) -> str | None:
    for prefix, ref in (
        ("BGPMT", line.dwings_commission_id),
        ("INV", line.dwings_invoice_id),
        ("GUA", line.dwings_guarantee_id),
    ):
        if ref and ref.strip():
            return f"{prefix}:{ref.strip().upper()}"
    return None


def build_grouping(
    lines: Iterable[LineSnapshot],
    referentials: Referentials,
    tolerance: Decimal = Decimal("0.01"),
) -> dict[str, GroupingFact]:
    """Grouping fact for every line; lines without a DWINGS reference get an empty fact."""
    groups: dict[tuple[str | None, str], list[tuple[LineSnapshot, str | None]]] = defaultdict(list)
    facts: dict[str, GroupingFact] = {}

    for line in lines:
        if line.is_deleted:
            continue
        key = dwings_group_key(line)
        if key is None:
            facts[line.line_id] = GroupingFact()
            continue
        side = referentials.account_side(line.country_id, line.account_id)
        country = (line.country_id or "").upper()
        groups[(country, key)].append((line, side))

    for members in groups.values():
        pivots = [line for line, side in members if side == "P"]
        receivables = [line for line, side in members if side == "R"]
        is_grouped = bool(pivots) and bool(receivables)

        is_amount_match = False
        if is_grouped:
            total = sum((l.signed_amount or Decimal("0") for l in pivots + receivables), Decimal("0"))
            is_amount_match = abs(total) < tolerance

        for line, side in members:
            if side == "P":
                opposite = receivables
            elif side == "R":
                opposite = pivots
            else:
                opposite = []
            facts[line.line_id] = GroupingFact(
                counterpart_line_id=opposite[0].line_id if len(opposite) == 1 else None,
                is_grouped=is_grouped,
                is_amount_match=is_amount_match,
                counterpart_count=len(opposite),
            )

    return facts
