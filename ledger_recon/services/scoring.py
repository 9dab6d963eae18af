"""Amount and date proximity scoring.

Amount exactness dominates date closeness in the confidence table because
bank processing shifts dates by a few days while amounts rarely move.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

EXACT_TOLERANCE_PERCENT = Decimal("0.1")
CLOSE_TOLERANCE_PERCENT = Decimal("5")
DEFAULT_TOLERANCE_PERCENT = Decimal("1")

# (exact, close, max_days, score), evaluated top to bottom; first hit wins.
MATCH_SCORE_TABLE: tuple[tuple[bool, bool, int, float], ...] = (
    (True, False, 0, 0.95),
    (True, False, 3, 0.85),
    (True, False, 7, 0.75),
    (False, True, 0, 0.70),
    (False, True, 3, 0.60),
    (True, False, 14, 0.50),
    (False, True, 7, 0.45),
    (True, False, 30, 0.40),
    (False, True, 14, 0.25),
)
AMOUNT_ONLY_SCORE = 0.10

DATE_PROXIMITY_TABLE: tuple[tuple[int, float], ...] = (
    (0, 1.0),
    (1, 0.95),
    (3, 0.85),
    (7, 0.70),
    (14, 0.50),
    (30, 0.30),
)
DATE_PROXIMITY_FLOOR = 0.1


def to_amount(value: Any) -> Decimal:
    """Absolute Decimal amount; missing or unparsable values become zero."""
    if value is None:
        return Decimal("0")
    try:
        return abs(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def to_date(value: Any) -> date | None:
    """Coerce a date, datetime or ISO string; anything else becomes None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def amounts_match(
    first: Any,
    second: Any,
    tolerance_percent: Decimal | float = DEFAULT_TOLERANCE_PERCENT,
) -> bool:
    """True if the absolute amounts differ by at most ``tolerance_percent`` of the larger."""
    a = to_amount(first)
    b = to_amount(second)
    if a == 0 and b == 0:
        return True
    if a == 0 or b == 0:
        return False
    tolerance = max(a, b) * Decimal(str(tolerance_percent)) / Decimal("100")
    return abs(a - b) <= tolerance


def days_between(first: Any, second: Any) -> int | None:
    """Absolute whole-day gap, or None when either date is missing/invalid."""
    d1 = to_date(first)
    d2 = to_date(second)
    if d1 is None or d2 is None:
        return None
    return abs((d1 - d2).days)


def dates_within_days(first: Any, second: Any, days: int) -> bool:
    gap = days_between(first, second)
    return gap is not None and gap <= days


def date_proximity_score(first: Any, second: Any) -> float:
    """Coarse 0-1 decay used for grouping eligibility only."""
    gap = days_between(first, second)
    if gap is None:
        return 0.0
    for max_days, score in DATE_PROXIMITY_TABLE:
        if gap <= max_days:
            return score
    return DATE_PROXIMITY_FLOOR


def score_amount_and_date(
    entry_amount: Any,
    entry_date: Any,
    record_amount: Any,
    record_date: Any,
) -> float:
    """Look up the confidence table for one (amount gap, day gap) pair.

    A missing or zero amount on either side scores 0.
    """
    if to_amount(entry_amount) == 0 or to_amount(record_amount) == 0:
        return 0.0
    exact = amounts_match(entry_amount, record_amount, EXACT_TOLERANCE_PERCENT)
    close = amounts_match(entry_amount, record_amount, CLOSE_TOLERANCE_PERCENT)
    if not exact and not close:
        return 0.0

    gap = days_between(entry_date, record_date)
    for needs_exact, needs_close, max_days, score in MATCH_SCORE_TABLE:
        if needs_exact and not exact:
            continue
        if needs_close and not close:
            continue
        if gap is not None and gap <= max_days:
            return score
    return AMOUNT_ONLY_SCORE


def calculate_match_score(entry: Any, record: Any) -> float:
    """Score a bank entry against a ledger record (``txn_date`` on the record)."""
    return score_amount_and_date(
        getattr(entry, "amount", None),
        getattr(entry, "statement_date", None),
        getattr(record, "amount", None),
        getattr(record, "txn_date", None),
    )
