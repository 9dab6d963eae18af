"""Subset-sum grouping for split payments.

Detects that several bank entries together equal one ledger record (a loan
paid out in tranches, an investor deposit sent in parts). The search is
exhaustive but bounded: subsets hold at most ``MAX_GROUP_SIZE`` members
including the mandatory one, and smaller subsets are always tried first.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from itertools import combinations
from typing import Any, Protocol, TypeVar
from uuid import UUID

from ledger_recon.services.name_matching import description_contains_name
from ledger_recon.services.scoring import DEFAULT_TOLERANCE_PERCENT, amounts_match, to_amount
from ledger_recon.services.text_matching import descriptions_are_related

MAX_GROUP_SIZE = 5
# Grouped bank entries must all sit within this many days of the ledger record.
GROUP_MAX_DAYS_FROM_RECORD = 14
# Pool window around the bank entry being matched.
GROUP_POOL_DAYS = 3


class _Amounted(Protocol):
    id: Any
    amount: Any


T = TypeVar("T", bound=_Amounted)


def group_total(items: Iterable[Any]) -> Decimal:
    return sum((to_amount(item.amount) for item in items), Decimal("0"))


def find_subset_sum(
    pool: Sequence[T],
    target_amount: Any,
    must_include_id: UUID,
    tolerance_percent: Decimal | float = DEFAULT_TOLERANCE_PERCENT,
) -> list[T] | None:
    """Smallest subset containing the mandatory item whose total matches the target.

    Sizes 1..MAX_GROUP_SIZE are tried in order; within a size, combinations are
    enumerated in pool order and the first hit is returned. Returns None if the
    mandatory item is not in the pool or nothing matches up to the cap.
    """
    anchor = next((item for item in pool if item.id == must_include_id), None)
    if anchor is None:
        return None

    others = [item for item in pool if item.id != must_include_id]
    anchor_amount = to_amount(anchor.amount)
    max_others = min(len(others), MAX_GROUP_SIZE - 1)

    for extra in range(max_others + 1):
        for combo in combinations(others, extra):
            total = anchor_amount + group_total(combo)
            if amounts_match(total, target_amount, tolerance_percent):
                return [anchor, *combo]
    return None


def group_has_related_descriptions(entries: Sequence[Any]) -> bool:
    """True when every description relates to the first one."""
    if len(entries) < 2:
        return True
    first = entries[0].description
    return all(descriptions_are_related(first, other.description) for other in entries[1:])


def group_is_related(entries: Sequence[Any], counterparty_name: str | None) -> bool:
    """Reject purely coincidental sums.

    A group passes when its descriptions are related to each other or when
    at least one description names the counterparty.
    """
    if group_has_related_descriptions(entries):
        return True
    if not counterparty_name:
        return False
    return any(
        description_contains_name(entry.description, counterparty_name) > 0.5 for entry in entries
    )
