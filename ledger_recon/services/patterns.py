"""Learned description patterns.

A pattern remembers how a vendor's bank descriptions were classified the last
time a user created a record for them ("EDF ENERGY" -> expense/utilities).
Scoring is pure; learning writes through the store and only ever reinforces.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from ledger_recon.logger import get_logger
from ledger_recon.models import (
    BankEntry,
    PatternDirection,
    ReconciliationPattern,
    ReconciliationType,
)
from ledger_recon.services.policy import ReconciliationConfig, load_reconciliation_config
from ledger_recon.services.scoring import to_amount
from ledger_recon.services.text_matching import (
    MAX_VENDOR_KEYWORDS,
    calculate_similarity,
    extract_vendor_keywords,
    levenshtein_similarity,
)

if TYPE_CHECKING:
    from ledger_recon.services.store import ReconciliationStore
    from ledger_recon.services.suggestions import SplitRatios

logger = get_logger(__name__)

EXACT_KEYWORD_WEIGHT = 1.0
SUBSTRING_KEYWORD_WEIGHT = 0.7
FUZZY_KEYWORD_WEIGHT = 0.5
FUZZY_KEYWORD_MIN_SIMILARITY = 0.75
MIN_KEYWORD_SCORE = 0.5

PATTERN_CONFIDENCE_WEIGHT = 0.6
KEYWORD_SCORE_WEIGHT = 0.25
USAGE_BOOST_DIVISOR = 20
USAGE_BOOST_CAP = 0.15
DEFAULT_PATTERN_CONFIDENCE = 0.5


def pattern_keyword_score(entry_keywords: list[str], pattern_keywords: list[str]) -> float:
    """Weighted keyword overlap, normalised by the pattern's keyword count."""
    if not pattern_keywords:
        return 0.0
    total = 0.0
    for entry_kw in entry_keywords:
        for pattern_kw in pattern_keywords:
            if entry_kw == pattern_kw:
                total += EXACT_KEYWORD_WEIGHT
            elif entry_kw in pattern_kw or pattern_kw in entry_kw:
                total += SUBSTRING_KEYWORD_WEIGHT
            elif levenshtein_similarity(entry_kw, pattern_kw) >= FUZZY_KEYWORD_MIN_SIMILARITY:
                total += FUZZY_KEYWORD_WEIGHT
    return total / len(pattern_keywords)


def _amount_in_range(amount: Decimal, pattern: ReconciliationPattern) -> bool:
    # Zero bounds count as unset.
    if pattern.amount_min and amount < to_amount(pattern.amount_min):
        return False
    if pattern.amount_max and amount > to_amount(pattern.amount_max):
        return False
    return True


def _direction_matches(entry: BankEntry, pattern: ReconciliationPattern) -> bool:
    if not pattern.transaction_type:
        return True
    expected = PatternDirection.CREDIT if entry.is_credit else PatternDirection.DEBIT
    return pattern.transaction_type == expected


def score_pattern(entry: BankEntry, pattern: ReconciliationPattern) -> float | None:
    """Confidence that ``pattern`` classifies ``entry``, or None if it does not apply.

    score = 0.6 * pattern confidence + 0.25 * keyword score + min(match_count / 20, 0.15)
    """
    pattern_keywords = extract_vendor_keywords(pattern.description_pattern)
    if not pattern_keywords:
        return None
    keyword_score = pattern_keyword_score(
        extract_vendor_keywords(entry.description), pattern_keywords
    )
    if keyword_score < MIN_KEYWORD_SCORE:
        return None
    if not _amount_in_range(to_amount(entry.amount), pattern):
        return None
    if not _direction_matches(entry, pattern):
        return None

    usage_boost = min((pattern.match_count or 1) / USAGE_BOOST_DIVISOR, USAGE_BOOST_CAP)
    confidence = pattern.confidence_score or DEFAULT_PATTERN_CONFIDENCE
    return (
        confidence * PATTERN_CONFIDENCE_WEIGHT + keyword_score * KEYWORD_SCORE_WEIGHT + usage_boost
    )


def pattern_signature(description: str | None) -> str:
    """Space-joined vendor keywords; empty when nothing is worth remembering."""
    return " ".join(extract_vendor_keywords(description)[:MAX_VENDOR_KEYWORDS])


def find_similar_pattern(
    patterns: list[ReconciliationPattern],
    signature: str,
    match_type: ReconciliationType,
    threshold: float,
) -> ReconciliationPattern | None:
    for pattern in sorted(patterns, key=lambda p: str(p.id)):
        if pattern.match_type != match_type:
            continue
        if calculate_similarity(pattern.description_pattern, signature) >= threshold:
            return pattern
    return None


async def learn_from_match(
    store: ReconciliationStore,
    entry: BankEntry,
    match_type: ReconciliationType,
    *,
    loan_id: UUID | None = None,
    investor_id: UUID | None = None,
    expense_type_id: UUID | None = None,
    split: SplitRatios | None = None,
    config: ReconciliationConfig | None = None,
) -> ReconciliationPattern | None:
    """Reinforce or create the pattern for a confirmed "create new" match."""
    config = config or load_reconciliation_config()
    signature = pattern_signature(entry.description)
    if not signature:
        logger.debug("No vendor keywords to learn from", bank_entry_id=str(entry.id))
        return None

    existing = find_similar_pattern(
        await store.list(ReconciliationPattern),
        signature,
        match_type,
        config.pattern_similarity_threshold,
    )

    if existing is not None:
        changes: dict[str, Any] = {
            "match_count": (existing.match_count or 1) + 1,
            "confidence_score": min(
                1.0,
                (existing.confidence_score or DEFAULT_PATTERN_CONFIDENCE)
                + config.pattern_confidence_step,
            ),
            "last_used_at": datetime.now(UTC),
        }
        if split is not None:
            changes.update(
                default_capital_ratio=split.capital,
                default_interest_ratio=split.interest,
                default_fees_ratio=split.fees,
            )
        await store.update(existing, **changes)
        logger.info(
            "Pattern reinforced",
            pattern_id=str(existing.id),
            signature=existing.description_pattern,
            match_count=existing.match_count,
            confidence=existing.confidence_score,
        )
        return existing

    amount = to_amount(entry.amount)
    window = config.pattern_amount_window
    pattern = ReconciliationPattern(
        id=uuid4(),
        description_pattern=signature,
        match_type=match_type,
        transaction_type=PatternDirection.CREDIT if entry.is_credit else PatternDirection.DEBIT,
        bank_source=entry.bank_source,
        amount_min=(amount * (1 - window)).quantize(Decimal("0.01")),
        amount_max=(amount * (1 + window)).quantize(Decimal("0.01")),
        loan_id=loan_id,
        investor_id=investor_id,
        expense_type_id=expense_type_id,
        default_capital_ratio=split.capital if split else 1.0,
        default_interest_ratio=split.interest if split else 0.0,
        default_fees_ratio=split.fees if split else 0.0,
        confidence_score=config.pattern_initial_confidence,
        match_count=1,
        last_used_at=datetime.now(UTC),
    )
    await store.add(pattern)
    logger.info(
        "Pattern created",
        pattern_id=str(pattern.id),
        signature=signature,
        match_type=ReconciliationType(match_type).value,
    )
    return pattern
